"""Tests for the rate service — live feed, caching, quotes, snapshot fallback, endpoints."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest
from sqlalchemy.dialects import postgresql

from app.config import settings
from app.core.errors import RateFeedError, ValidationError
from app.models.currency_rate import CurrencyRate
from app.models.markup_fee import MarkupType, TransactionType
from app.services import rate_service
from app.services.rate_service import (
    MOCK_RATES,
    RATE_CACHE_PREFIX,
    FcsApiProvider,
    MockRateProvider,
    RateService,
    parse_pairs,
    set_rate_provider,
)
from tests.fakes import db_result


def _failing_provider(exc: Exception):
    provider = MagicMock()
    provider.name = "fcsapi"
    provider.fetch_rates = AsyncMock(side_effect=exc)
    return provider


def _upserts(mock_db) -> list[dict]:
    """Bound insert values of every snapshot upsert sent to the session."""
    upserts = []
    for call in mock_db.execute.await_args_list:
        compiled = call.args[0].compile(dialect=postgresql.dialect())
        if str(compiled).startswith("INSERT INTO currency_rates"):
            assert "ON CONFLICT ON CONSTRAINT uq_currency_rates_currency_city DO UPDATE" in str(compiled)
            upserts.append(compiled.params)
    return upserts


def _snapshot(currency="USD", city="DEL", live_rate="82.5000"):
    return CurrencyRate(currency_code=currency, city=city, live_rate=Decimal(live_rate), is_active=True)


@pytest.fixture
def usd_cash_fee(make_fee):
    return make_fee()


# ---------------------------------------------------------------------------
# Pairs and providers
# ---------------------------------------------------------------------------


class TestParsePairs:

    def test_defaults_from_settings(self):
        assert parse_pairs(None) == settings.DEFAULT_CURRENCY_PAIRS.split(",")

    def test_normalizes(self):
        assert parse_pairs(" usd/inr , eur/inr ,") == ["USD/INR", "EUR/INR"]

    def test_invalid_pair(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_pairs("USD-INR")
        assert exc_info.value.fields == ["currency_pairs"]


class TestMockRateProvider:

    @pytest.mark.asyncio
    async def test_returns_known_currencies_only(self):
        rates = await MockRateProvider().fetch_rates(["USD/INR", "XYZ/INR"])
        assert rates == {"USD": MOCK_RATES["USD"]}


class TestFcsApiProvider:

    @pytest.fixture
    def feed(self, monkeypatch):
        """Route the provider's HTTP client through a MockTransport; returns the captured requests."""
        monkeypatch.setattr(settings, "FCSAPI_KEY", "test-key")
        seen: list[httpx.Request] = []
        body = {"status": True, "response": [
            {"s": "USD/INR", "c": "83.2150"},
            {"s": "EUR/INR", "c": "not-a-number"},
            {"s": "GBP/INR"},
        ]}

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json=body)

        real_client = httpx.AsyncClient
        monkeypatch.setattr(
            rate_service.httpx, "AsyncClient",
            lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
        )
        return seen

    @pytest.mark.asyncio
    async def test_parses_response(self, feed):
        rates = await FcsApiProvider().fetch_rates(["USD/INR", "EUR/INR", "GBP/INR"])
        assert rates == {"USD": Decimal("83.2150")}
        assert feed[0].url.params["symbol"] == "USD/INR,EUR/INR,GBP/INR"
        assert feed[0].url.params["access_key"] == "test-key"

    @pytest.mark.asyncio
    async def test_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(settings, "FCSAPI_KEY", "")
        with pytest.raises(RateFeedError):
            await FcsApiProvider().fetch_rates(["USD/INR"])

    @pytest.mark.asyncio
    async def test_bad_format(self, monkeypatch):
        monkeypatch.setattr(settings, "FCSAPI_KEY", "test-key")
        real_client = httpx.AsyncClient
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"status": False}))
        monkeypatch.setattr(
            rate_service.httpx, "AsyncClient",
            lambda **kwargs: real_client(transport=transport, **kwargs),
        )
        with pytest.raises(RateFeedError):
            await FcsApiProvider().fetch_rates(["USD/INR"])

    @pytest.mark.asyncio
    async def test_http_error_becomes_feed_error(self, monkeypatch, mock_db, mock_redis):
        monkeypatch.setattr(settings, "FCSAPI_KEY", "test-key")
        real_client = httpx.AsyncClient
        transport = httpx.MockTransport(lambda request: httpx.Response(502))
        monkeypatch.setattr(
            rate_service.httpx, "AsyncClient",
            lambda **kwargs: real_client(transport=transport, **kwargs),
        )
        set_rate_provider(FcsApiProvider())

        with pytest.raises(RateFeedError):
            await RateService(mock_db, mock_redis).get_live_rates(["USD/INR"])


# ---------------------------------------------------------------------------
# Live rates and caching
# ---------------------------------------------------------------------------


class TestLiveRates:

    @pytest.mark.asyncio
    async def test_cache_miss_fetches_and_caches(self, mock_db, mock_redis):
        rates, source = await RateService(mock_db, mock_redis).get_live_rates(["USD/INR", "EUR/INR"])

        assert rates == {"USD": MOCK_RATES["USD"], "EUR": MOCK_RATES["EUR"]}
        assert source == "mock"
        key, ttl, payload = mock_redis.setex.call_args.args
        assert key == RATE_CACHE_PREFIX + "EUR/INR,USD/INR"
        assert ttl == settings.FX_RATE_CACHE_TTL_SECONDS
        assert json.loads(payload)["rates"]["USD"] == "83.1250"

    @pytest.mark.asyncio
    async def test_cache_hit_skips_provider(self, mock_db, mock_redis):
        provider = _failing_provider(AssertionError("provider should not be called"))
        set_rate_provider(provider)
        mock_redis.get.return_value = json.dumps({"rates": {"USD": "84.0000"}, "source": "fcsapi"})

        rates, source = await RateService(mock_db, mock_redis).get_live_rates(["USD/INR"])

        assert rates == {"USD": Decimal("84.0000")}
        assert source == "fcsapi"
        provider.fetch_rates.assert_not_awaited()
        mock_redis.setex.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_connection_error(self, mock_db, mock_redis):
        set_rate_provider(_failing_provider(httpx.ConnectError("refused")))
        with pytest.raises(RateFeedError):
            await RateService(mock_db, mock_redis).get_live_rates(["USD/INR"])

    @pytest.mark.asyncio
    async def test_empty_result(self, mock_db, mock_redis):
        with pytest.raises(RateFeedError):
            await RateService(mock_db, mock_redis).get_live_rates(["XYZ/INR"])
        mock_redis.setex.assert_not_awaited()


# ---------------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------------


class TestQuotes:

    @pytest.mark.asyncio
    async def test_quote_applies_city_markup(self, mock_db, mock_redis, usd_cash_fee):
        mock_db.execute.return_value = db_result(None, scalars=[usd_cash_fee])

        quote = await RateService(mock_db, mock_redis).get_quote("del", "USD/INR,EUR/INR")

        assert quote["city"] == "DEL"
        assert quote["source"] == "mock"
        assert quote["total_currencies"] == 2
        usd = quote["rates"]["USD"]
        # 83.1250 * 1.025 * 1.18
        assert usd["bcn"] == Decimal("100.5397")
        assert usd["bpc"] is None
        assert usd["live_rate"] == Decimal("83.1250")
        assert all(quote["rates"]["EUR"][name] is None for name in ("bpc", "bcn", "scn"))

    @pytest.mark.asyncio
    async def test_quote_writes_snapshots(self, mock_db, mock_redis, usd_cash_fee):
        mock_db.execute.return_value = db_result(None, scalars=[usd_cash_fee])

        await RateService(mock_db, mock_redis).get_quote("DEL", "USD/INR")

        [snapshot] = _upserts(mock_db)
        assert snapshot["currency_code"] == "USD"
        assert snapshot["city"] == "DEL"
        assert snapshot["bcn"] == Decimal("100.5397")
        assert snapshot["live_rate"] == Decimal("83.1250")
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_oldest_fee_per_type_wins(self, mock_db, mock_redis, make_fee):
        older = make_fee(markup_value=Decimal("1.0"))
        newer = make_fee(markup_type=MarkupType.FIXED, markup_value=Decimal("5"))
        mock_db.execute.return_value = db_result(None, scalars=[older, newer])

        quote = await RateService(mock_db, mock_redis).get_quote("DEL", "USD/INR")

        # 83.1250 * 1.01 * 1.18
        assert quote["rates"]["USD"]["bcn"] == Decimal("99.0684")

    @pytest.mark.asyncio
    async def test_feed_down_uses_snapshot(self, mock_db, mock_redis, usd_cash_fee):
        set_rate_provider(_failing_provider(RateFeedError("feed down")))
        mock_db.execute.side_effect = [
            db_result(scalars=[_snapshot(live_rate="82.0000")]),
            db_result(scalars=[usd_cash_fee]),
        ]

        quote = await RateService(mock_db, mock_redis).get_quote("DEL", "USD/INR")

        assert quote["source"] == "snapshot"
        assert quote["rates"]["USD"]["live_rate"] == Decimal("82.0000")
        # 82 * 1.025 * 1.18
        assert quote["rates"]["USD"]["bcn"] == Decimal("99.1790")
        assert _upserts(mock_db) == []

    @pytest.mark.asyncio
    async def test_feed_down_without_snapshot(self, mock_db, mock_redis):
        set_rate_provider(_failing_provider(RateFeedError("feed down")))
        with pytest.raises(RateFeedError):
            await RateService(mock_db, mock_redis).get_quote("DEL", "USD/INR")

    @pytest.mark.asyncio
    async def test_detailed_quote(self, mock_db, mock_redis, make_fee):
        fees = [
            make_fee(),
            make_fee(
                transaction_type=TransactionType.SELLCASH,
                markup_value=Decimal("2.5"), markup_value_sell=Decimal("1.5"),
            ),
        ]
        mock_db.execute.return_value = db_result(None, scalars=fees)

        quote = await RateService(mock_db, mock_redis).get_detailed_quote("DEL", "USD/INR")

        assert quote["has_markup"] is True
        usd = quote["rates"]["USD"]
        assert usd["markup_details"]["CASH"]["markup_type"] == "percentage"
        assert usd["markup_details"]["CARD"] is None
        assert usd["markup_details"]["SELLCASH"]["markup_value_sell"] == Decimal("1.5")
        assert usd["calculated_rates"]["buy"]["bcn"] == Decimal("100.5397")
        # 83.1250 * 1.015 * 1.18
        assert usd["calculated_rates"]["sell"]["scn"] == Decimal("99.5588")
        assert usd["calculated_rates"]["sell"]["spc"] is None
        assert _upserts(mock_db) == []

    @pytest.mark.asyncio
    async def test_detailed_quote_without_markup(self, mock_db, mock_redis):
        quote = await RateService(mock_db, mock_redis).get_detailed_quote("BOM", "USD/INR")
        assert quote["has_markup"] is False


# ---------------------------------------------------------------------------
# Snapshot refresh
# ---------------------------------------------------------------------------


class TestRefreshSnapshots:

    @pytest.mark.asyncio
    async def test_updates_existing_and_creates_missing(self, mock_db, mock_redis, usd_cash_fee):
        mock_db.execute.side_effect = [
            db_result(scalars=[usd_cash_fee]),
            db_result(False),
            db_result(True),
        ]

        results = await RateService(mock_db, mock_redis).refresh_snapshots("DEL", "USD/INR,EUR/INR")

        assert [(r["currency"], r["action"]) for r in results] == [("USD", "updated"), ("EUR", "created")]
        usd, eur = _upserts(mock_db)
        assert usd["live_rate"] == Decimal("83.1250")
        assert usd["bcn"] == Decimal("100.5397")
        assert eur["currency_code"] == "EUR"
        assert eur["bcn"] is None

    @pytest.mark.asyncio
    async def test_never_falls_back(self, mock_db, mock_redis):
        set_rate_provider(_failing_provider(RateFeedError("feed down")))
        with pytest.raises(RateFeedError):
            await RateService(mock_db, mock_redis).refresh_snapshots("DEL", "USD/INR")
        mock_db.execute.assert_not_awaited()


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


class TestRateEndpoints:

    @pytest.mark.asyncio
    async def test_get_rates(self, client, mock_db, usd_cash_fee):
        mock_db.execute.return_value = db_result(None, scalars=[usd_cash_fee])

        response = await client.get("/api/v1/rates/", params={"city_code": "DEL", "currency_pairs": "USD/INR"})

        assert response.status_code == 200
        data = response.json()
        assert data["total_currencies"] == 1
        assert Decimal(data["rates"]["USD"]["bcn"]) == Decimal("100.5397")
        assert data["rates"]["USD"]["spc"] is None

    @pytest.mark.asyncio
    async def test_invalid_pairs_400(self, client):
        response = await client.get("/api/v1/rates/", params={"city_code": "DEL", "currency_pairs": "dollars"})
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_feed_down_503(self, client):
        set_rate_provider(_failing_provider(RateFeedError("feed down")))
        response = await client.get("/api/v1/rates/", params={"city_code": "DEL"})
        assert response.status_code == 503
        assert response.json()["detail"]["error_code"] == "RATE_FEED_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_detailed(self, client, mock_db, usd_cash_fee):
        mock_db.execute.return_value = db_result(None, scalars=[usd_cash_fee])
        response = await client.get("/api/v1/rates/detailed", params={"city_code": "DEL", "currency_pairs": "USD/INR"})
        assert response.status_code == 200
        assert response.json()["rates"]["USD"]["markup_details"]["CASH"]["markup_type"] == "percentage"

    @pytest.mark.asyncio
    async def test_refresh_requires_admin(self, client, user_headers):
        response = await client.post("/api/v1/rates/refresh", json={"city_code": "DEL"}, headers=user_headers)
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_refresh(self, client, mock_db, admin_headers):
        mock_db.execute.side_effect = [db_result(scalars=[]), db_result(True)]
        response = await client.post(
            "/api/v1/rates/refresh",
            json={"city_code": "del", "currency_pairs": "USD/INR"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()
        assert data["city"] == "DEL"
        assert data["updated_currencies"] == 1
        assert data["results"][0]["action"] == "created"
