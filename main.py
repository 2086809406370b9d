"""FeedServe - Main application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.middleware.base import BaseHTTPMiddleware

from feedserve import __version__
from feedserve.api import admin_router, feed_router, health_router
from feedserve.api.errors import register_exception_handlers
from feedserve.config import get_settings
from feedserve.db.session import create_tables, dispose_db_engine
from feedserve.logging import setup_logging

FEED_PATH_PREFIX = "/feed/"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to every non-feed response.

    Feed responses carry their own headers, governed by the
    ``enable_security_headers`` option.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith(FEED_PATH_PREFIX):
            return response

        # Prevent MIME type sniffing
        response.headers["X-Content-Type-Options"] = "nosniff"

        # Prevent clickjacking attacks
        response.headers["X-Frame-Options"] = "DENY"

        # The admin API only returns JSON and feed previews
        response.headers["Content-Security-Policy"] = (
            "default-src 'none'; frame-ancestors 'none'"
        )

        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for startup and shutdown events."""
    setup_logging()
    if get_settings().env == "dev":
        await create_tables()
    yield
    await dispose_db_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="FeedServe",
        description="RSS 2.0, Atom and JSON Feed delivery with HTTP caching and validation",
        version=__version__,
        lifespan=lifespan,
    )

    # Configure rate limiting
    limiter = Limiter(key_func=get_remote_address)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    register_exception_handlers(app)

    app.add_middleware(SecurityHeadersMiddleware)

    # CORS for the admin UI; feed responses set their own open CORS headers
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.admin_origin],
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
    )

    app.include_router(health_router)
    app.include_router(feed_router)
    app.include_router(admin_router)

    return app


app = create_app()


def main():
    """Entry point for running the application."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.env == "dev",
    )


if __name__ == "__main__":
    main()
