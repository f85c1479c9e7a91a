"""
Integration tests for rate snapshot writes against a real database.

Quotes upsert one snapshot row per (currency, city); concurrent first
quotes for the same pair must both succeed and leave a single row.
"""

import asyncio
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from app.models.currency_rate import CurrencyRate
from app.services.rate_service import MockRateProvider, RateService, set_rate_provider


async def _quote(session_factory, redis):
    async with session_factory() as session:
        quote = await RateService(session, redis).get_quote("DEL", "USD/INR")
        await session.commit()
        return quote


async def _refresh(session_factory, redis):
    async with session_factory() as session:
        results = await RateService(session, redis).refresh_snapshots("DEL", "USD/INR")
        await session.commit()
        return results


@pytest.fixture
def mock_provider(reset_rate_provider):
    set_rate_provider(MockRateProvider())


@pytest.mark.asyncio
async def test_concurrent_first_quotes_share_one_snapshot(session_factory, mock_redis, mock_provider):
    quotes = await asyncio.gather(
        _quote(session_factory, mock_redis),
        _quote(session_factory, mock_redis),
    )

    assert all(q["source"] == "mock" for q in quotes)
    async with session_factory() as session:
        count = await session.scalar(
            select(func.count(CurrencyRate.id)).where(
                CurrencyRate.currency_code == "USD", CurrencyRate.city == "DEL",
            )
        )
        snapshot = await session.scalar(select(CurrencyRate))
    assert count == 1
    assert snapshot.live_rate == Decimal("83.1250")


@pytest.mark.asyncio
async def test_refresh_reports_created_then_updated(session_factory, mock_redis, mock_provider):
    first = await _refresh(session_factory, mock_redis)
    second = await _refresh(session_factory, mock_redis)

    assert [r["action"] for r in first] == ["created"]
    assert [r["action"] for r in second] == ["updated"]
