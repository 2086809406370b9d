"""RSS 2.0 writer."""

from feedserve.content.models import ContentItem
from feedserve.feeds.models import FeedDefinition
from feedserve.render.base import GENERATOR, RenderContext, latest_timestamp
from feedserve.render.xml import attr, cdata, rfc2822, text

NAMESPACES = {
    "content": "http://purl.org/rss/1.0/modules/content/",
    "wfw": "http://wellformedweb.org/CommentAPI/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "atom": "http://www.w3.org/2005/Atom",
    "sy": "http://purl.org/rss/1.0/modules/syndication/",
    "slash": "http://purl.org/rss/1.0/modules/slash/",
}


def _item(item: ContentItem, ctx: RenderContext) -> list[str]:
    lines = [
        "<item>",
        f"<title>{cdata(item.title)}</title>",
        f"<link>{text(item.permalink)}</link>",
        f"<comments>{text(item.permalink + '#comments')}</comments>",
        f"<pubDate>{rfc2822(item.published_at)}</pubDate>",
    ]
    if item.author_name:
        lines.append(f"<dc:creator>{cdata(item.author_name)}</dc:creator>")
    for name in item.categories + item.tags:
        lines.append(f"<category>{cdata(name)}</category>")

    permalink_flag = "true" if ctx.guid_is_permalink else "false"
    lines.append(f'<guid isPermaLink="{permalink_flag}">{text(ctx.guid(item))}</guid>')

    summary = ctx.summary(item)
    if summary:
        lines.append(f"<description>{cdata(summary)}</description>")
    body = ctx.body(item)
    if body:
        lines.append(f"<content:encoded>{cdata(body)}</content:encoded>")

    lines.append(f"<slash:comments>{item.comment_count}</slash:comments>")

    for enclosure in item.enclosures:
        lines.append(
            f"<enclosure url={attr(enclosure.url)} "
            f'length="{enclosure.length_bytes}" '
            f"type={attr(enclosure.mime_type)} />"
        )

    lines.append("</item>")
    return lines


def render_rss2(
    definition: FeedDefinition, items: list[ContentItem], ctx: RenderContext
) -> bytes:
    """Serialize ``items`` as an RSS 2.0 document, in the given order."""
    ns = " ".join(f'xmlns:{prefix}="{uri}"' for prefix, uri in NAMESPACES.items())
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<rss version="2.0" {ns}>',
        "<channel>",
        f"<title>{cdata(ctx.feed_title(definition))}</title>",
        f"<link>{text(ctx.home_url)}</link>",
        f"<description>{cdata(ctx.feed_description(definition))}</description>",
        f"<atom:link href={attr(ctx.feed_url(definition))} "
        'rel="self" type="application/rss+xml" />',
        f"<language>{text(ctx.language)}</language>",
    ]
    if items:
        lines.append(f"<lastBuildDate>{rfc2822(latest_timestamp(items))}</lastBuildDate>")
    lines.extend(
        [
            "<sy:updatePeriod>hourly</sy:updatePeriod>",
            "<sy:updateFrequency>1</sy:updateFrequency>",
            f"<generator>{GENERATOR}</generator>",
        ]
    )

    for item in items:
        lines.extend(_item(item, ctx))

    lines.extend(["</channel>", "</rss>", ""])
    return "\n".join(lines).encode("utf-8")
