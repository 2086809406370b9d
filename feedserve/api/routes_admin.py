"""Administrative endpoints: cache control, validation and previews."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel

from feedserve.api.dependencies import get_engine
from feedserve.auth.tokens import require_admin
from feedserve.feeds.models import FeedFormat
from feedserve.feeds.pipeline import FeedEngine
from feedserve.validator.models import ValidationResult

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)]
)


class ValidateRequest(BaseModel):
    url: str
    format: FeedFormat = FeedFormat.RSS2


@router.post("/cache/invalidate")
async def invalidate_all(engine: FeedEngine = Depends(get_engine)):
    """Drop every cached selection and rendered feed."""
    removed = await engine.invalidate_all_caches()
    return {"ok": True, "removed": removed}


@router.post("/cache/invalidate/{slug}")
async def invalidate_feed(slug: str, engine: FeedEngine = Depends(get_engine)):
    """Drop the cache entries of a single feed."""
    removed = await engine.invalidate_selection_cache(slug.lower())
    return {"ok": True, "slug": slug.lower(), "removed": removed}


@router.get("/cache/stats")
async def cache_stats(engine: FeedEngine = Depends(get_engine)):
    """Live cache entry counts and sizes."""
    return await engine.cache_stats()


@router.post("/validate", response_model=ValidationResult)
async def validate_feed(body: ValidateRequest, engine: FeedEngine = Depends(get_engine)):
    """Fetch a feed URL and validate it."""
    if not body.url.startswith(("http://", "https://")):
        raise HTTPException(status_code=400, detail="url must be an http(s) URL")
    return await engine.validate(body.url, body.format)


@router.get("/preview/{slug}")
async def preview_feed(slug: str, engine: FeedEngine = Depends(get_engine)):
    """Render a feed, enabled or not, without HTTP caching."""
    definition = await engine.definition_for(slug)
    body = await engine.render_preview(definition)
    return Response(content=body, media_type=definition.format.content_type)


@router.post("/content/{item_id}/changed")
async def content_changed(item_id: int, engine: FeedEngine = Depends(get_engine)):
    """Notify the engine that a content item was published, updated or deleted."""
    await engine.repository.notify_content_changed(item_id)
    return {"ok": True, "item_id": item_id}


@router.post("/definitions/{slug}/changed")
async def definition_changed(slug: str, engine: FeedEngine = Depends(get_engine)):
    """Notify the engine that a feed definition was edited or deleted."""
    await engine.on_definition_changed(slug.lower())
    return {"ok": True, "slug": slug.lower()}


@router.get("/validation/last")
async def last_validation(engine: FeedEngine = Depends(get_engine)):
    """Result of the most recent scheduled validation sweep."""
    report = await engine.monitor.last_sweep()
    if report is None:
        raise HTTPException(status_code=404, detail="No validation sweep has run yet")
    return report


@router.get("/validation/items/{item_id}")
async def item_validation(item_id: int, engine: FeedEngine = Depends(get_engine)):
    """On-publish validation results stored for a content item."""
    results = {}
    for fmt in FeedFormat:
        result = await engine.monitor.item_result(item_id, fmt)
        if result is not None:
            results[fmt.value] = result
    return {"item_id": item_id, "results": results}
