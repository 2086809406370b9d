"""Feed renderers for RSS 2.0, Atom and JSON Feed."""

from feedserve.content.models import ContentItem
from feedserve.feeds.models import FeedDefinition, FeedFormat

from .atom import render_atom
from .base import RenderContext
from .jsonfeed import render_jsonfeed
from .rss2 import render_rss2

RENDERERS = {
    FeedFormat.RSS2: render_rss2,
    FeedFormat.ATOM: render_atom,
    FeedFormat.JSON: render_jsonfeed,
}


def render(
    fmt: FeedFormat,
    definition: FeedDefinition,
    items: list[ContentItem],
    ctx: RenderContext,
) -> bytes:
    """Serialize ``items`` in ``fmt``. Pure: no I/O, no wall-clock reads."""
    return RENDERERS[fmt](definition, items, ctx)


__all__ = ["RenderContext", "render", "render_atom", "render_jsonfeed", "render_rss2"]
