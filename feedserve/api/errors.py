"""Exception handlers mapping feed errors to plain-text responses."""

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from feedserve.errors import FeedNotFound, UpstreamQueryFailure


async def feed_not_found_handler(request: Request, exc: FeedNotFound):
    return PlainTextResponse("Feed not found", status_code=404)


async def upstream_failure_handler(request: Request, exc: UpstreamQueryFailure):
    return PlainTextResponse("Feed temporarily unavailable", status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(FeedNotFound, feed_not_found_handler)
    app.add_exception_handler(UpstreamQueryFailure, upstream_failure_handler)
