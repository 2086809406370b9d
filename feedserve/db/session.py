"""Async database engine and session factory for the content and config stores."""

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from feedserve.config import get_settings
from feedserve.db.models import Base

logger = logging.getLogger(__name__)

_db_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def _async_url(url: str) -> str:
    # Plain sqlite URLs from .env files need the async driver
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


def get_db_engine() -> AsyncEngine:
    """Process-wide async engine for ``database_url``."""
    global _db_engine
    if _db_engine is None:
        _db_engine = create_async_engine(
            _async_url(get_settings().database_url), future=True, pool_pre_ping=True
        )
    return _db_engine


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Session factory handed to the SQL repository and config store."""
    global _sessionmaker
    if _sessionmaker is None:
        _sessionmaker = async_sessionmaker(get_db_engine(), expire_on_commit=False)
    return _sessionmaker


async def create_tables() -> None:
    """Create missing tables. Used for development databases."""
    async with get_db_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables ensured")


async def dispose_db_engine() -> None:
    """Close pooled connections on shutdown."""
    global _db_engine, _sessionmaker
    if _db_engine is not None:
        await _db_engine.dispose()
    _db_engine = None
    _sessionmaker = None
