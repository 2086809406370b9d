"""JSON Feed 1.1 writer."""

import json
from typing import Any

from feedserve.content.models import ContentItem
from feedserve.feeds.models import FeedDefinition
from feedserve.render.base import RenderContext
from feedserve.render.text import strip_html

JSON_FEED_VERSION = "https://jsonfeed.org/version/1.1"


def _item(item: ContentItem, ctx: RenderContext) -> dict[str, Any]:
    body = ctx.body(item)
    data: dict[str, Any] = {
        "id": str(item.id),
        "url": item.permalink,
        "title": item.title,
        "content_html": body,
        "content_text": strip_html(body),
        "summary": ctx.summary(item),
        "date_published": item.published_at.isoformat(),
        "date_modified": item.modified_at.isoformat(),
        "authors": [{"name": item.author_name}] if item.author_name else [],
        "tags": list(item.tags),
        "language": ctx.language,
    }

    if item.image_url:
        data["image"] = item.image_url
        data["banner_image"] = item.image_url

    if item.enclosures:
        attachments = []
        for enclosure in item.enclosures:
            attachment: dict[str, Any] = {
                "url": enclosure.url,
                "mime_type": enclosure.mime_type or "application/octet-stream",
                "title": enclosure.title or item.title,
            }
            if enclosure.length_bytes > 0:
                attachment["size_in_bytes"] = enclosure.length_bytes
            attachments.append(attachment)
        data["attachments"] = attachments

    return data


def render_jsonfeed(
    definition: FeedDefinition, items: list[ContentItem], ctx: RenderContext
) -> bytes:
    """Serialize ``items`` as a JSON Feed 1.1 document."""
    feed = {
        "version": JSON_FEED_VERSION,
        "title": ctx.feed_title(definition),
        "description": ctx.feed_description(definition),
        "home_page_url": ctx.home_url,
        "feed_url": ctx.feed_url(definition),
        "language": ctx.language,
        "icon": f"{ctx.site_url.rstrip('/')}/favicon.ico",
        "favicon": f"{ctx.site_url.rstrip('/')}/favicon.ico",
        "authors": [{"name": ctx.site_name, "url": ctx.home_url}],
        "items": [_item(item, ctx) for item in items],
    }
    return json.dumps(feed, indent=2, ensure_ascii=False).encode("utf-8")
