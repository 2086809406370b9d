"""API routers for FeedServe."""

from feedserve.api.routes_admin import router as admin_router
from feedserve.api.routes_feed import router as feed_router
from feedserve.api.routes_health import router as health_router

__all__ = [
    "admin_router",
    "feed_router",
    "health_router",
]
