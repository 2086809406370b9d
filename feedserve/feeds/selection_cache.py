"""Selection and rendered-output caching with Redis."""

import asyncio
import hashlib
import json
import logging
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from redis.asyncio import Redis

from feedserve.content.models import ContentItem, ContentQuery
from feedserve.content.repository import ContentRepository
from feedserve.errors import UpstreamQueryFailure
from feedserve.feeds.enrichment import EnclosureEnricher
from feedserve.feeds.models import FeedDefinition, FeedFormat

logger = logging.getLogger(__name__)

SELECTION_PREFIX = "fs:sel:"
RENDER_PREFIX = "fs:render:"
INDEX_PREFIX = "fs:idx:"

DEFAULT_SELECTION_TTL = 15 * 60


def selection_hash(definition: FeedDefinition) -> str:
    """Stable hash of the definition's filter-relevant fields."""
    canonical = json.dumps(
        definition.selection_fields(), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:32]


def _selection_key(definition: FeedDefinition) -> str:
    """Generate Redis key for a definition's cached selection."""
    return f"{SELECTION_PREFIX}{selection_hash(definition)}"


def render_fingerprint(definition: FeedDefinition, context: Mapping[str, Any]) -> str:
    """Stable hash of every input that shapes rendered bytes.

    Covers the selection fields, the feed's identity and text, and the site
    rendering context (cleanup flag, GUID style, site identity).
    """
    canonical = json.dumps(
        {
            "selection": definition.selection_fields(),
            "slug": definition.slug,
            "title": definition.title,
            "description": definition.description,
            "context": dict(context),
        },
        sort_keys=True,
        separators=(",", ":"),
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:32]


def _render_key(
    definition: FeedDefinition,
    fmt: FeedFormat,
    last_modified: datetime,
    context: Mapping[str, Any],
) -> str:
    """Generate Redis key for cached rendered bytes."""
    return (
        f"{RENDER_PREFIX}{fmt.value}:{definition.slug}:"
        f"{render_fingerprint(definition, context)}:{int(last_modified.timestamp())}"
    )


def _index_key(slug: str) -> str:
    """Redis set holding every cache key written on behalf of ``slug``."""
    return f"{INDEX_PREFIX}{slug}"


def build_query(definition: FeedDefinition) -> ContentQuery:
    """Translate a feed definition into repository filters."""
    return ContentQuery(
        content_types=sorted(definition.content_types),
        category_ids=sorted(definition.category_filter),
        tag_ids=sorted(definition.tag_filter),
        taxonomy_terms={
            taxonomy: sorted(terms)
            for taxonomy, terms in definition.taxonomy_filter.items()
            if terms
        },
        date_from=definition.date_from,
        date_to=definition.date_to,
        order_by=definition.order_by.value,
        order_direction=definition.order_direction.value,
        limit=definition.limit,
    )


class SelectionCache:
    """Caches the ordered item list for each feed definition.

    Entries expire after ``ttl_seconds`` and are dropped explicitly on content
    changes and definition edits. The cache adds no locking: concurrent misses
    for one key each query the repository and the last write wins.
    """

    def __init__(
        self,
        redis: Redis,
        repository: ContentRepository,
        ttl_seconds: int = DEFAULT_SELECTION_TTL,
        render_ttl_seconds: int = DEFAULT_SELECTION_TTL,
        query_timeout: float = 30.0,
    ):
        self.redis = redis
        self.repository = repository
        self.ttl_seconds = ttl_seconds
        self.render_ttl_seconds = render_ttl_seconds
        self.query_timeout = query_timeout

    async def _remember(self, slug: str, key: str) -> None:
        # The index must outlive every entry it lists
        index = _index_key(slug)
        await self.redis.sadd(index, key)  # type: ignore[misc]
        await self.redis.expire(index, max(self.ttl_seconds, self.render_ttl_seconds))

    async def get_or_build(
        self,
        definition: FeedDefinition,
        enricher: EnclosureEnricher | None = None,
    ) -> list[ContentItem]:
        """
        Return the cached selection for ``definition`` or build it.

        On a miss the content repository is queried with the definition's
        filters, enclosures are optionally enriched, and the result is cached.
        Failed queries are never cached.

        Raises:
            UpstreamQueryFailure: If the repository query fails or times out
        """
        key = _selection_key(definition)

        if cached_data := await self.redis.get(key):
            logger.debug(f"Selection cache hit for {definition.slug} ({key})")
            # Selections are shared across slugs with identical filters
            await self._remember(definition.slug, key)
            return [ContentItem(**item) for item in json.loads(cached_data)]

        logger.debug(f"Selection cache miss for {definition.slug} ({key})")
        try:
            items = await asyncio.wait_for(
                self.repository.query(build_query(definition)),
                timeout=self.query_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error(f"Content query timed out for feed {definition.slug}")
            raise UpstreamQueryFailure(
                f"Content query timed out after {self.query_timeout}s"
            ) from e
        except Exception as e:
            logger.error(f"Content query failed for feed {definition.slug}", exc_info=True)
            raise UpstreamQueryFailure(str(e)) from e

        if enricher is not None:
            items = await enricher.enrich(items)

        # Cache the results using mode='json' to handle datetime serialization
        serialized = [item.model_dump(mode="json") for item in items]
        await self.redis.setex(key, self.ttl_seconds, json.dumps(serialized))
        await self._remember(definition.slug, key)

        return items

    async def get_rendered(
        self,
        definition: FeedDefinition,
        fmt: FeedFormat,
        last_modified: datetime,
        context: Mapping[str, Any] | None = None,
    ) -> bytes | None:
        """Return cached rendered bytes, if present."""
        return await self.redis.get(
            _render_key(definition, fmt, last_modified, context or {})
        )

    async def store_rendered(
        self,
        definition: FeedDefinition,
        fmt: FeedFormat,
        last_modified: datetime,
        body: bytes,
        context: Mapping[str, Any] | None = None,
    ) -> None:
        """Cache rendered bytes for this definition, format, freshness and context."""
        key = _render_key(definition, fmt, last_modified, context or {})
        await self.redis.setex(key, self.render_ttl_seconds, body)
        await self._remember(definition.slug, key)

    async def invalidate(self, slug: str) -> int:
        """Drop every cache entry written for ``slug``. Returns keys removed."""
        index = _index_key(slug)
        members = await self.redis.smembers(index)  # type: ignore[misc]
        keys = [m.decode("utf-8") if isinstance(m, bytes) else m for m in members]
        removed = 0
        if keys:
            removed = await self.redis.delete(*keys)
        await self.redis.delete(index)
        logger.info(f"Invalidated {removed} cache entries for feed {slug}")
        return removed

    async def _scan_keys(self, pattern: str) -> list:
        found = []
        cursor = 0
        while True:
            cursor, keys = await self.redis.scan(cursor, match=pattern, count=100)
            found.extend(keys)
            if cursor == 0:
                break
        return found

    async def invalidate_all(self) -> int:
        """Drop every selection, rendered and index entry."""
        removed = 0
        for prefix in (SELECTION_PREFIX, RENDER_PREFIX, INDEX_PREFIX):
            keys = await self._scan_keys(f"{prefix}*")
            if keys:
                removed += await self.redis.delete(*keys)
        logger.info(f"Invalidated all feed caches ({removed} keys)")
        return removed

    async def stats(self) -> dict:
        """Count live entries and their payload size."""
        result = {}
        total_size = 0
        for name, prefix in (("selection", SELECTION_PREFIX), ("render", RENDER_PREFIX)):
            keys = await self._scan_keys(f"{prefix}*")
            size = 0
            for key in keys:
                size += await self.redis.strlen(key)
            result[f"{name}_entries"] = len(keys)
            result[f"{name}_bytes"] = size
            total_size += size

        result["cache_size_bytes"] = total_size
        result["cache_size_mb"] = round(total_size / 1024 / 1024, 2)
        return result
