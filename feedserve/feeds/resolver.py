"""Resolve request paths to feed definitions."""

from feedserve.config_store import ConfigSnapshot
from feedserve.errors import FeedNotFound
from feedserve.feeds.models import (
    BUILTIN_FORMATS,
    FeedDefinition,
    FeedFormat,
    OrderBy,
    OrderDirection,
)

# Capability flag gating each built-in format
FORMAT_FLAGS = {
    FeedFormat.RSS2: "enable_rss2",
    FeedFormat.ATOM: "enable_atom",
    FeedFormat.JSON: "enable_json_feed",
}

FEED_PREFIX = "feed"


def feed_name_from_path(request_path: str) -> str:
    """Extract the feed name from ``/feed/{name}/`` (or a bare ``name``)."""
    parts = [p for p in request_path.strip().split("/") if p]
    if len(parts) == 2 and parts[0] == FEED_PREFIX:
        return parts[1].lower()
    if len(parts) == 1 and parts[0] != FEED_PREFIX:
        return parts[0].lower()
    return ""


def builtin_definition(fmt: FeedFormat, config: ConfigSnapshot) -> FeedDefinition:
    """Synthesize the definition behind a built-in feed."""
    settings = config.settings
    content_types = {
        t.strip()
        for t in config.options.get("builtin_content_types", "post").split(",")
        if t.strip()
    }
    return FeedDefinition(
        slug=fmt.value,
        title=settings.site_name,
        description=settings.site_description,
        content_types=content_types or {"post"},
        limit=max(1, min(100, config.get_int("default_feed_limit", 10))),
        order_by=OrderBy.DATE,
        order_direction=OrderDirection.DESC,
        format=fmt,
        builtin=True,
    )


def resolve(request_path: str, config: ConfigSnapshot) -> tuple[FeedDefinition, FeedFormat]:
    """Map a request path to ``(definition, format)``.

    Pure: reads only the configuration snapshot, never the content repository.

    Raises:
        FeedNotFound: unknown slug, disabled feed, or disabled built-in format
    """
    name = feed_name_from_path(request_path)
    if not name:
        raise FeedNotFound(request_path)

    if name in BUILTIN_FORMATS:
        fmt = FeedFormat(name)
        if not config.get_bool(FORMAT_FLAGS[fmt], True):
            raise FeedNotFound(request_path)
        return builtin_definition(fmt, config), fmt

    if not config.get_bool("enable_custom_feeds", True):
        raise FeedNotFound(request_path)

    for definition in config.definitions:
        if definition.slug == name and definition.enabled:
            return definition, definition.format

    raise FeedNotFound(request_path)


def resolve_slug(slug: str, config: ConfigSnapshot) -> FeedDefinition:
    """Find a definition by slug regardless of its enabled flag (admin preview)."""
    if slug in BUILTIN_FORMATS:
        return builtin_definition(FeedFormat(slug), config)
    for definition in config.definitions:
        if definition.slug == slug:
            return definition
    raise FeedNotFound(slug)
