"""Feed definitions and per-request negotiation types."""

import re
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, field_validator, model_validator

from feedserve.content.models import ensure_utc

SLUG_PATTERN = re.compile(r"^[a-z0-9][a-z0-9-]*$")


class FeedFormat(str, Enum):
    """Wire formats the renderer can produce."""

    RSS2 = "rss2"
    ATOM = "atom"
    JSON = "json"

    @property
    def content_type(self) -> str:
        return CONTENT_TYPES[self]


CONTENT_TYPES = {
    FeedFormat.RSS2: "application/rss+xml; charset=utf-8",
    FeedFormat.ATOM: "application/atom+xml; charset=utf-8",
    FeedFormat.JSON: "application/feed+json; charset=utf-8",
}

BUILTIN_FORMATS = frozenset(f.value for f in FeedFormat)


class OrderBy(str, Enum):
    DATE = "date"
    TITLE = "title"
    RANDOM = "random"
    COMMENT_COUNT = "commentCount"


class OrderDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class FeedDefinition(BaseModel):
    """Stored configuration describing one feed's filters, ordering and limit."""

    slug: str
    title: str = ""
    description: str = ""
    content_types: set[str] = Field(default_factory=lambda: {"post"})
    category_filter: set[int] = Field(default_factory=set)
    tag_filter: set[int] = Field(default_factory=set)
    taxonomy_filter: dict[str, set[int]] = Field(default_factory=dict)
    date_from: datetime | None = None
    date_to: datetime | None = None
    limit: int = Field(default=10, ge=1, le=100)
    order_by: OrderBy = OrderBy.DATE
    order_direction: OrderDirection = OrderDirection.DESC
    enabled: bool = True
    format: FeedFormat = FeedFormat.RSS2
    builtin: bool = False

    @field_validator("slug")
    @classmethod
    def _valid_slug(cls, value: str) -> str:
        value = value.strip().lower()
        if not SLUG_PATTERN.match(value):
            raise ValueError("slug must be lower-case letters, digits and hyphens")
        return value

    @field_validator("date_from", "date_to")
    @classmethod
    def _dates_utc(cls, value: datetime | None) -> datetime | None:
        return ensure_utc(value) if value is not None else None

    @model_validator(mode="after")
    def _custom_slug_not_builtin(self) -> "FeedDefinition":
        if not self.builtin and self.slug in BUILTIN_FORMATS:
            raise ValueError(f"slug '{self.slug}' is reserved for a built-in feed")
        return self

    def selection_fields(self) -> dict:
        """Canonical, ordered view of the fields that determine the selection.

        Title, description, enabled and format are excluded so cosmetic edits
        keep cached selections valid.
        """
        return {
            "content_types": sorted(self.content_types),
            "category_filter": sorted(self.category_filter),
            "tag_filter": sorted(self.tag_filter),
            "taxonomy_filter": {
                taxonomy: sorted(terms)
                for taxonomy, terms in sorted(self.taxonomy_filter.items())
                if terms
            },
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
            "limit": self.limit,
            "order_by": self.order_by.value,
            "order_direction": self.order_direction.value,
        }


class FreshnessToken(BaseModel):
    """Per-request freshness metadata. Never persisted."""

    last_modified: datetime
    etag: str

    @property
    def quoted_etag(self) -> str:
        return f'"{self.etag}"'


class Negotiation(BaseModel):
    """Outcome of conditional-request and encoding negotiation."""

    not_modified: bool
    freshness: FreshnessToken | None = None
    gzip: bool = False
