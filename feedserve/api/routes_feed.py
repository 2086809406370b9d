"""Public feed endpoints."""

from fastapi import APIRouter, Depends, Request, Response
from slowapi import Limiter
from slowapi.util import get_remote_address

from feedserve.api.dependencies import get_engine
from feedserve.feeds.pipeline import FeedEngine

router = APIRouter(tags=["feed"])
limiter = Limiter(key_func=get_remote_address)


@router.api_route("/feed/{name}", methods=["GET", "HEAD"], include_in_schema=False)
@router.api_route("/feed/{name}/", methods=["GET", "HEAD"])
@limiter.limit("120/minute")
async def get_feed(
    request: Request,
    name: str,
    engine: FeedEngine = Depends(get_engine),
):
    """
    Serve a built-in (``rss2``, ``atom``, ``json``) or custom feed.

    Returns 304 with no body when the client's cached copy is current, 404 for
    unknown or disabled feeds and 500 when the content store fails.
    """
    feed = await engine.serve(f"/feed/{name}/", request.headers)
    body = b"" if feed.status == 304 or request.method == "HEAD" else feed.body
    response = Response(content=body, status_code=feed.status, headers=feed.headers)
    if request.method == "HEAD" and feed.status == 200:
        response.headers["Content-Length"] = str(len(feed.body))
    return response
