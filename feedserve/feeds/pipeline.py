"""The feed delivery pipeline: resolve, negotiate, select, render, compress.

Collaborators are wired explicitly by :class:`FeedEngineBuilder`; the engine
subscribes to the content repository's change notifications at build time.
"""

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field

from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from feedserve.config import Settings
from feedserve.config_store import ConfigSnapshot, ConfigStore, SqlConfigStore
from feedserve.content.repository import ContentRepository, SqlContentRepository
from feedserve.errors import UpstreamQueryFailure
from feedserve.feeds.enrichment import EnclosureEnricher
from feedserve.feeds.models import BUILTIN_FORMATS, FeedDefinition, FeedFormat
from feedserve.feeds.negotiator import HttpCachingNegotiator, compress
from feedserve.feeds.resolver import FORMAT_FLAGS, builtin_definition, resolve, resolve_slug
from feedserve.feeds.selection_cache import SelectionCache
from feedserve.render import RenderContext, render
from feedserve.validator.models import SweepReport, ValidationResult
from feedserve.validator.monitor import SweepTarget, ValidationMonitor
from feedserve.validator.validator import FeedValidator

logger = logging.getLogger(__name__)


@dataclass
class FeedResponse:
    """Status, headers and body for one feed request."""

    status: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""


class FeedEngine:
    """Serves feeds and exposes the cache and validation operations."""

    def __init__(
        self,
        settings: Settings,
        config_store: ConfigStore,
        repository: ContentRepository,
        cache: SelectionCache,
        negotiator: HttpCachingNegotiator,
        validator: FeedValidator,
        monitor: ValidationMonitor,
        enricher: EnclosureEnricher | None = None,
    ):
        self.settings = settings
        self.config_store = config_store
        self.repository = repository
        self.cache = cache
        self.negotiator = negotiator
        self.validator = validator
        self.monitor = monitor
        self.enricher = enricher
        self._background: set[asyncio.Task] = set()

    def render_context(self, config: ConfigSnapshot) -> RenderContext:
        return RenderContext(
            site_url=self.settings.site_url,
            site_name=self.settings.site_name,
            site_description=self.settings.site_description,
            language=self.settings.site_language,
            clean_content=config.get_bool("enable_content_cleanup", True),
            guid_is_permalink=config.get_bool("guid_is_permalink", False),
        )

    async def serve(
        self,
        path: str,
        request_headers: Mapping[str, str],
        allow_compression: bool = True,
    ) -> FeedResponse:
        """
        Handle one feed request.

        The 304 decision is made before any selection or render work.

        Raises:
            FeedNotFound: Unknown or disabled feed
            UpstreamQueryFailure: Content repository failure or timeout
        """
        config = await self.config_store.snapshot()
        definition, fmt = resolve(path, config)

        negotiation = await self.negotiator.negotiate(
            definition, fmt, request_headers, config, allow_compression=allow_compression
        )
        headers = self.negotiator.response_headers(fmt, negotiation, config)
        if negotiation.not_modified:
            return FeedResponse(status=304, headers=headers)

        if negotiation.freshness is None:
            raise UpstreamQueryFailure(f"No freshness token for feed {definition.slug}")
        body = await self._render(definition, fmt, config, negotiation.freshness.last_modified)
        if negotiation.gzip:
            body = compress(body)
        return FeedResponse(status=200, headers=headers, body=body)

    async def _render(self, definition, fmt, config, last_modified) -> bytes:
        ctx = self.render_context(config)
        use_enclosure_fix = config.get_bool("enable_enclosure_fix", False)
        context_fields = {**asdict(ctx), "enclosure_fix": use_enclosure_fix}
        use_render_cache = config.get_bool("enable_render_cache", False)
        if use_render_cache:
            if cached := await self.cache.get_rendered(
                definition, fmt, last_modified, context_fields
            ):
                logger.debug(f"Render cache hit for {definition.slug} ({fmt.value})")
                return cached

        enricher = self.enricher if use_enclosure_fix else None
        items = await self.cache.get_or_build(definition, enricher=enricher)
        body = render(fmt, definition, items, ctx)

        if use_render_cache:
            await self.cache.store_rendered(definition, fmt, last_modified, body, context_fields)
        return body

    async def definition_for(self, slug: str) -> FeedDefinition:
        """Look up a definition by slug, enabled or not.

        Raises:
            FeedNotFound: No such definition
        """
        return resolve_slug(slug.lower(), await self.config_store.snapshot())

    async def render_preview(self, definition: FeedDefinition) -> bytes:
        """Render ``definition`` in its own format, bypassing HTTP negotiation."""
        config = await self.config_store.snapshot()
        enricher = self.enricher if config.get_bool("enable_enclosure_fix", False) else None
        items = await self.cache.get_or_build(definition, enricher=enricher)
        return render(definition.format, definition, items, self.render_context(config))

    async def invalidate_selection_cache(self, slug: str) -> int:
        return await self.cache.invalidate(slug)

    async def invalidate_all_caches(self) -> int:
        return await self.cache.invalidate_all()

    async def cache_stats(self) -> dict:
        return await self.cache.stats()

    async def validate(
        self, source: str | bytes, format_hint: FeedFormat | str = FeedFormat.RSS2
    ) -> ValidationResult:
        return await self.validator.validate(source, format_hint)

    def sweep_targets(self, config: ConfigSnapshot) -> list[SweepTarget]:
        """Every enabled built-in and custom feed."""
        ctx = self.render_context(config)
        definitions = [
            builtin_definition(fmt, config)
            for fmt in FeedFormat
            if config.get_bool(FORMAT_FLAGS[fmt], True)
        ]
        if config.get_bool("enable_custom_feeds", True):
            definitions.extend(d for d in config.definitions if d.enabled)
        return [SweepTarget(name=d.slug, url=ctx.feed_url(d), format=d.format) for d in definitions]

    async def run_validation_sweep(self) -> SweepReport:
        """Validate all enabled feeds over HTTP and store the report."""
        config = await self.config_store.snapshot()
        return await self.monitor.run_sweep(
            self.sweep_targets(config), alert=config.get_bool("alert_on_errors", False)
        )

    async def on_content_changed(self, item_id: int) -> None:
        """Content publish/update/delete hook.

        Drops every cached selection since a change can move an item into or out
        of any filtered feed. Validation on publish runs in the background.
        """
        await self.invalidate_all_caches()
        config = await self.config_store.snapshot()
        if config.get_bool("validate_on_publish", False):
            task = asyncio.create_task(self._validate_after_change(item_id, config))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    async def on_definition_changed(self, slug: str) -> None:
        """Definition edit/delete hook."""
        await self.invalidate_selection_cache(slug)

    async def _validate_after_change(self, item_id: int, config: ConfigSnapshot) -> None:
        for name in sorted(BUILTIN_FORMATS):
            fmt = FeedFormat(name)
            if not config.get_bool(FORMAT_FLAGS[fmt], True):
                continue
            try:
                response = await self.serve(f"/feed/{name}/", {}, allow_compression=False)
                result = await self.validator.validate(
                    response.body, fmt, headers=response.headers
                )
                await self.monitor.record_item_result(item_id, fmt, result)
            except Exception:
                logger.error(
                    f"On-publish validation of {name} failed for item {item_id}",
                    exc_info=True,
                )

    async def join_background(self) -> None:
        """Wait for pending background validations."""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)


class FeedEngineBuilder:
    """Wires the engine's collaborators together."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._redis: Redis | None = None
        self._repository: ContentRepository | None = None
        self._config_store: ConfigStore | None = None
        self._validator: FeedValidator | None = None

    def with_redis(self, redis: Redis) -> "FeedEngineBuilder":
        self._redis = redis
        return self

    def with_repository(self, repository: ContentRepository) -> "FeedEngineBuilder":
        self._repository = repository
        return self

    def with_config_store(self, config_store: ConfigStore) -> "FeedEngineBuilder":
        self._config_store = config_store
        return self

    def with_validator(self, validator: FeedValidator) -> "FeedEngineBuilder":
        self._validator = validator
        return self

    def build(self) -> FeedEngine:
        if self._redis is None or self._repository is None or self._config_store is None:
            raise ValueError("FeedEngineBuilder needs redis, a repository and a config store")

        settings = self.settings
        validator = self._validator or FeedValidator(timeout=settings.validator_timeout_seconds)
        engine = FeedEngine(
            settings=settings,
            config_store=self._config_store,
            repository=self._repository,
            cache=SelectionCache(
                self._redis,
                self._repository,
                ttl_seconds=settings.selection_ttl_seconds,
                render_ttl_seconds=settings.render_ttl_seconds,
                query_timeout=settings.repository_timeout_seconds,
            ),
            negotiator=HttpCachingNegotiator(
                self._repository,
                site_identity=settings.site_url,
                query_timeout=settings.repository_timeout_seconds,
            ),
            validator=validator,
            monitor=ValidationMonitor(validator, self._redis, settings),
            enricher=EnclosureEnricher(
                self._redis,
                timeout=settings.enclosure_head_timeout_seconds,
                ttl_seconds=settings.enclosure_size_ttl_seconds,
            ),
        )
        self._repository.on_content_changed(engine.on_content_changed)
        return engine


def build_default_engine(
    settings: Settings,
    redis: Redis,
    sessionmaker: async_sessionmaker[AsyncSession],
) -> FeedEngine:
    """Engine backed by the SQL content repository and configuration store."""
    return (
        FeedEngineBuilder(settings)
        .with_redis(redis)
        .with_repository(SqlContentRepository(sessionmaker))
        .with_config_store(SqlConfigStore(sessionmaker, settings))
        .build()
    )
