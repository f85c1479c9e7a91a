"""
Rate snapshot Celery tasks.

Refreshes the ``currency_rates`` snapshots for every configured city on
the RATE_REFRESH_INTERVAL_SECONDS schedule, so quotes have a recent
fallback when the live feed is down. Never touches stock.
"""

import asyncio
import logging

from app.config import settings
from app.core.errors import RateFeedError
from app.database import create_worker_engine, session_factory_for
from app.redis_client import create_redis
from app.services.rate_service import RateService
from app.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


async def refresh_cities(cities: list[str]) -> dict[str, int | None]:
    """
    Refresh snapshots city by city, each in its own transaction.

    Returns ``{city: currencies updated}``; None marks a city whose feed
    call failed (its previous snapshots stay in place).
    """
    # Per-run connections: the task's event loop is not the web app's.
    engine = create_worker_engine()
    session_factory = session_factory_for(engine)
    redis = create_redis()
    summary: dict[str, int | None] = {}
    try:
        for city in cities:
            async with session_factory() as session:
                try:
                    results = await RateService(session, redis).refresh_snapshots(city)
                    await session.commit()
                    summary[city] = len(results)
                except RateFeedError as exc:
                    await session.rollback()
                    logger.warning("Rate refresh for %s failed: %s", city, exc.message)
                    summary[city] = None
    finally:
        await redis.aclose()
        await engine.dispose()
    return summary


@celery_app.task(name="app.tasks.rate_tasks.refresh_rate_snapshots")
def refresh_rate_snapshots(cities: list[str] | None = None):
    """
    Refresh rate snapshots for *cities* (default RATE_REFRESH_CITIES).

    Celery tasks are synchronous, so we run the async refresh
    in an event loop.
    """
    cities = cities or settings.RATE_REFRESH_CITIES
    logger.info("Starting rate snapshot refresh for %s", ", ".join(cities))
    loop = asyncio.new_event_loop()
    try:
        summary = loop.run_until_complete(refresh_cities(cities))
        logger.info("Rate snapshot refresh completed: %s", summary)
        return summary
    except Exception:
        logger.exception("Rate snapshot refresh failed")
        raise
    finally:
        loop.close()
