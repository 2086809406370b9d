"""Atom 1.0 writer."""

from feedserve.content.models import ContentItem
from feedserve.feeds.models import FeedDefinition
from feedserve.render.base import GENERATOR, RenderContext, latest_timestamp
from feedserve.render.xml import attr, cdata, rfc3339, text

ATOM_NS = "http://www.w3.org/2005/Atom"


def _entry(item: ContentItem, ctx: RenderContext) -> list[str]:
    lines = ["<entry>"]
    if item.author_name:
        lines.append(f"<author><name>{text(item.author_name)}</name></author>")
    lines.extend(
        [
            f'<title type="html">{cdata(item.title)}</title>',
            f'<link rel="alternate" type="text/html" href={attr(item.permalink)} />',
            f"<id>{text(ctx.guid(item))}</id>",
            f"<updated>{rfc3339(item.modified_at)}</updated>",
            f"<published>{rfc3339(item.published_at)}</published>",
        ]
    )
    for name in item.categories + item.tags:
        lines.append(f"<category term={attr(name)} />")

    summary = ctx.summary(item)
    if summary:
        lines.append(f'<summary type="html">{cdata(summary)}</summary>')
    body = ctx.body(item)
    if body:
        lines.append(
            f'<content type="html" xml:base={attr(item.permalink)}>{cdata(body)}</content>'
        )

    for enclosure in item.enclosures:
        lines.append(
            f'<link rel="enclosure" type={attr(enclosure.mime_type)} '
            f'length="{enclosure.length_bytes}" href={attr(enclosure.url)} />'
        )

    lines.append("</entry>")
    return lines


def render_atom(
    definition: FeedDefinition, items: list[ContentItem], ctx: RenderContext
) -> bytes:
    """Serialize ``items`` as an Atom feed; ``updated`` is the newest entry time."""
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<feed xmlns="{ATOM_NS}" xml:lang={attr(ctx.language)}>',
        f'<title type="text">{text(ctx.feed_title(definition))}</title>',
    ]
    description = ctx.feed_description(definition)
    if description:
        lines.append(f'<subtitle type="text">{text(description)}</subtitle>')
    lines.extend(
        [
            f"<updated>{rfc3339(latest_timestamp(items))}</updated>",
            f"<id>{text(ctx.feed_url(definition))}</id>",
            f'<link rel="alternate" type="text/html" href={attr(ctx.home_url)} />',
            f'<link rel="self" type="application/atom+xml" '
            f"href={attr(ctx.feed_url(definition))} />",
            f"<generator>{GENERATOR}</generator>",
        ]
    )

    for item in items:
        lines.extend(_entry(item, ctx))

    lines.extend(["</feed>", ""])
    return "\n".join(lines).encode("utf-8")
