"""Enclosure enrichment: fill in missing lengths and MIME types.

Runs when a selection is built, never while rendering, so the render path
stays free of network calls.
"""

import hashlib
import logging
import mimetypes
from pathlib import PurePosixPath
from urllib.parse import urlparse

import httpx
from redis.asyncio import Redis

from feedserve.content.models import ContentItem

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    "mp3": "audio/mpeg",
    "mp4": "video/mp4",
    "m4a": "audio/mp4",
    "wav": "audio/wav",
    "ogg": "audio/ogg",
    "webm": "video/webm",
    "avi": "video/avi",
    "mov": "video/quicktime",
}

USER_AGENT = "FeedServe/1.0 (enclosure sizing)"


def guess_mime_type(url: str) -> str:
    """Infer a MIME type from the URL's file extension."""
    extension = PurePosixPath(urlparse(url).path).suffix.lstrip(".").lower()
    if extension in MEDIA_TYPES:
        return MEDIA_TYPES[extension]
    guessed, _ = mimetypes.guess_type(f"file.{extension}") if extension else (None, None)
    return guessed or "application/octet-stream"


def _size_key(url: str) -> str:
    """Generate Redis key for a cached enclosure size."""
    return f"fs:encsize:{hashlib.md5(url.encode('utf-8')).hexdigest()}"


class EnclosureEnricher:
    """Looks up enclosure sizes with HEAD requests and caches them in Redis."""

    def __init__(self, redis: Redis, timeout: float = 10.0, ttl_seconds: int = 86400):
        self.redis = redis
        self.timeout = timeout
        self.ttl_seconds = ttl_seconds

    async def content_length(self, client: httpx.AsyncClient, url: str) -> int:
        """
        Size of the resource at ``url`` in bytes, or 0 when unknown.

        Successful lookups are cached for ``ttl_seconds``.
        """
        key = _size_key(url)
        if cached := await self.redis.get(key):
            return int(cached)

        try:
            response = await client.head(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug(f"HEAD failed for enclosure {url}: {e}")
            return 0

        try:
            size = int(response.headers.get("content-length", "0"))
        except ValueError:
            return 0

        if size > 0:
            await self.redis.setex(key, self.ttl_seconds, str(size))
        return size

    async def enrich(self, items: list[ContentItem]) -> list[ContentItem]:
        """Return copies of ``items`` with zero lengths and blank types filled in."""
        if not any(e.length_bytes <= 0 or not e.mime_type for i in items for e in i.enclosures):
            return items

        enriched = []
        async with httpx.AsyncClient(
            timeout=self.timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
        ) as client:
            for item in items:
                enclosures = []
                for enclosure in item.enclosures:
                    updates = {}
                    if not enclosure.mime_type:
                        updates["mime_type"] = guess_mime_type(enclosure.url)
                    if enclosure.length_bytes <= 0:
                        size = await self.content_length(client, enclosure.url)
                        if size > 0:
                            updates["length_bytes"] = size
                    enclosures.append(
                        enclosure.model_copy(update=updates) if updates else enclosure
                    )
                enriched.append(item.model_copy(update={"enclosures": enclosures}))
        return enriched
