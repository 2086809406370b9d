"""FastAPI dependencies for API routers."""

from collections.abc import AsyncGenerator

from fastapi import Depends
from redis.asyncio import Redis

from feedserve.config import get_settings
from feedserve.db.session import get_sessionmaker
from feedserve.feeds.pipeline import FeedEngine, build_default_engine

_redis_client: Redis | None = None
_engine: FeedEngine | None = None


async def get_redis() -> AsyncGenerator[Redis, None]:
    """Dependency for FastAPI routes to get an async Redis connection.

    Yields:
        Async Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        settings = get_settings()
        _redis_client = Redis.from_url(
            settings.redis_url,
            encoding="utf-8",
            decode_responses=False,
        )

    yield _redis_client


async def get_engine(redis: Redis = Depends(get_redis)) -> FeedEngine:
    """Dependency that returns the process-wide feed engine."""
    global _engine

    if _engine is None:
        _engine = build_default_engine(get_settings(), redis, get_sessionmaker())
    return _engine
