"""Pydantic models for content items projected from the content repository."""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Enclosure(BaseModel):
    """A feed-item attachment reference."""

    url: str
    mime_type: str = ""
    length_bytes: int = 0
    title: str | None = None


class ContentItem(BaseModel):
    """Read-only projection of a publishable item."""

    id: int
    title: str
    permalink: str
    content_type: str = "post"
    published_at: datetime
    modified_at: datetime
    author_name: str = ""
    excerpt: str = ""
    body_html: str = ""
    categories: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    enclosures: list[Enclosure] = Field(default_factory=list)
    comment_count: int = 0
    image_url: str | None = None

    @field_validator("published_at", "modified_at")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        return ensure_utc(value)


class ContentQuery(BaseModel):
    """Filters passed to the content repository.

    Within ``taxonomy_terms`` a single taxonomy's terms are OR-ed and distinct
    taxonomies are AND-ed. Category and tag filters behave like two more
    taxonomies.
    """

    content_types: list[str] = Field(default_factory=lambda: ["post"])
    category_ids: list[int] = Field(default_factory=list)
    tag_ids: list[int] = Field(default_factory=list)
    taxonomy_terms: dict[str, list[int]] = Field(default_factory=dict)
    date_from: datetime | None = None
    date_to: datetime | None = None
    order_by: str = "date"
    order_direction: str = "desc"
    limit: int = 10
