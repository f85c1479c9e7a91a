"""
Currency rate endpoints.

Quotes apply each city's markup configuration to live market rates
(cached in Redis). Public; quoting never touches stock.
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import CurrentUser, require_admin
from app.core.errors import ForexDeskError, to_http_exception
from app.database import get_db
from app.redis_client import get_redis
from app.schemas.rate import (
    DetailedQuoteResponse,
    QuoteResponse,
    RateRefreshRequest,
    RateRefreshResponse,
)
from app.services.rate_service import RateService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/", response_model=QuoteResponse)
async def get_rates(
    city_code: str = Query(..., min_length=3, max_length=3, examples=["DEL"]),
    currency_pairs: str | None = Query(None, examples=["USD/INR,EUR/INR"]),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """
    Seven named rates per currency for a city.

    ``bpc`` prepaid card, ``btt`` wire transfer, ``bdd`` demand draft,
    ``bcn`` cash, ``ncn_combo`` cash + card, ``scn`` sell cash, ``spc``
    sell card. A rate is null when the city has no markup for it. Falls
    back to the last stored snapshot when the live feed is down.
    """
    try:
        quote = await RateService(db, redis).get_quote(city_code, currency_pairs)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return QuoteResponse(**quote)


@router.get("/detailed", response_model=DetailedQuoteResponse)
async def get_detailed_rates(
    city_code: str = Query(..., min_length=3, max_length=3),
    currency_pairs: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Rates plus the markup configuration behind each one."""
    try:
        quote = await RateService(db, redis).get_detailed_quote(city_code, currency_pairs)
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return DetailedQuoteResponse(**quote)


@router.post("/refresh", response_model=RateRefreshResponse)
async def refresh_rates(
    payload: RateRefreshRequest,
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    redis=Depends(get_redis),
):
    """Recompute and store rate snapshots for a city from the live feed."""
    try:
        results = await RateService(db, redis).refresh_snapshots(
            payload.city_code, payload.currency_pairs,
        )
    except ForexDeskError as exc:
        raise to_http_exception(exc)
    return RateRefreshResponse(
        city=payload.city_code.upper(),
        updated_currencies=len(results),
        results=results,
    )
