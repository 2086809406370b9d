"""Shared rendering context and per-item helpers."""

from dataclasses import dataclass
from datetime import datetime, timezone

from feedserve.content.models import ContentItem
from feedserve.feeds.models import FeedDefinition
from feedserve.render.text import clean_html, smart_excerpt, strip_html

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

GENERATOR = "FeedServe/1.0"


@dataclass(frozen=True)
class RenderContext:
    """Site-level values a renderer needs besides the items themselves."""

    site_url: str
    site_name: str
    site_description: str = ""
    language: str = "en-US"
    clean_content: bool = True
    guid_is_permalink: bool = False

    @property
    def home_url(self) -> str:
        return self.site_url.rstrip("/") + "/"

    def feed_url(self, definition: FeedDefinition) -> str:
        return f"{self.site_url.rstrip('/')}/feed/{definition.slug}/"

    def feed_title(self, definition: FeedDefinition) -> str:
        return definition.title or self.site_name

    def feed_description(self, definition: FeedDefinition) -> str:
        return definition.description or self.site_description

    def guid(self, item: ContentItem) -> str:
        if self.guid_is_permalink:
            return item.permalink
        return f"{self.site_url.rstrip('/')}/?p={item.id}"

    def body(self, item: ContentItem) -> str:
        if self.clean_content:
            return clean_html(item.body_html, self.site_url)
        return item.body_html

    def summary(self, item: ContentItem) -> str:
        """Excerpt, or a word-limited excerpt of the body when there is none."""
        if item.excerpt:
            return item.excerpt
        return smart_excerpt(strip_html(item.body_html))


def latest_timestamp(items: list[ContentItem]) -> datetime:
    """Newest modification among ``items``; the epoch when empty.

    Build dates derive only from the items so repeated renders are identical.
    """
    if not items:
        return EPOCH
    return max(item.modified_at for item in items)
