"""Health check endpoints."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from redis.asyncio import Redis
from redis.exceptions import RedisError

from feedserve.api.dependencies import get_redis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def health_check():
    """Liveness: the process is up."""
    return {"ok": True}


@router.get("/readyz")
async def readiness_check(redis: Redis = Depends(get_redis)):
    """
    Readiness check endpoint.

    Returns:
        ``{"ok": true}`` when the selection cache store answers, 503 otherwise
    """
    try:
        await redis.ping()
    except (RedisError, OSError) as e:
        logger.warning(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"ok": False, "redis": "unavailable"})
    return {"ok": True}
