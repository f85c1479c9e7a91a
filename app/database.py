"""
Async SQLAlchemy setup for the forex desk's PostgreSQL store.

The web app shares one pooled engine. The session yielded by ``get_db``
is the transactional scope of a request: stock checks, row locks and
ledger writes made by a handler commit together or roll back together.

Code that runs on its own event loop (Celery tasks, integration tests)
must not borrow the pooled engine; it builds one with
``create_worker_engine`` and disposes of it when done.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from app.config import settings

engine = create_async_engine(
    settings.DATABASE_URL,
    pool_size=settings.DATABASE_POOL_SIZE,
    echo=settings.DEBUG,
)

async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


class Base(DeclarativeBase):
    """Declarative base for the ledger, order and rate snapshot tables."""


def create_worker_engine(url: str | None = None) -> AsyncEngine:
    """Unpooled engine: every session opens its own connection."""
    return create_async_engine(url or settings.DATABASE_URL, poolclass=NullPool)


def session_factory_for(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


async def get_db() -> AsyncSession:
    """Yield a request-scoped session; commit on success, roll back on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
