"""
Forex Desk — FastAPI application entry point.

Mounts the order, ledger, stock and rate routers under ``/api/v1``.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import settings
from app.api import forex_requests, markup_fees, rates, stock
from app.services.rate_service import get_rate_provider

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"


def _check_rate_feed() -> None:
    if settings.FX_RATE_MOCK:
        if settings.APP_ENV == "production":
            logger.warning("FX_RATE_MOCK is on in production; quotes use mock market rates")
    elif not settings.FCSAPI_KEY:
        logger.warning("FCSAPI_KEY is empty; live rate calls will fail and quotes fall back to snapshots")


@asynccontextmanager
async def lifespan(app: FastAPI):
    from app.database import engine
    from app.redis_client import redis

    _check_rate_feed()
    logger.info("%s starting (env=%s, rate feed=%s)", settings.APP_NAME, settings.APP_ENV, get_rate_provider().name)

    yield

    await engine.dispose()
    await redis.aclose()


app = FastAPI(
    title=settings.APP_NAME,
    description="Forex buy/sell desk: rate quotes, currency stock, and order approvals.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(forex_requests.router, prefix=f"{API_PREFIX}/forex-requests", tags=["Forex Requests"])
app.include_router(markup_fees.router, prefix=f"{API_PREFIX}/markup-fees", tags=["Markup Fees"])
app.include_router(stock.router, prefix=f"{API_PREFIX}/stock", tags=["Stock"])
app.include_router(rates.router, prefix=f"{API_PREFIX}/rates", tags=["Rates"])


@app.get("/health")
async def health_check():
    """Liveness probe; reports which rate feed quotes are priced from."""
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "environment": settings.APP_ENV,
        "rate_feed": get_rate_provider().name,
        "version": "0.1.0",
    }
