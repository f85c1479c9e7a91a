"""
Redis client for the live-rate cache.

``REDIS_SSL`` upgrades a plain ``redis://`` URL to ``rediss://``. The web
app shares one module-level client; Celery tasks run on their own event
loop and build a fresh one with ``create_redis``.
"""

import redis.asyncio as aioredis

from app.config import settings


def create_redis() -> aioredis.Redis:
    url = settings.REDIS_URL
    if settings.REDIS_SSL and url.startswith("redis://"):
        url = "rediss://" + url[len("redis://"):]
    return aioredis.from_url(url, decode_responses=True)


redis = create_redis()


async def get_redis() -> aioredis.Redis:
    """FastAPI dependency that provides the Redis client."""
    return redis
