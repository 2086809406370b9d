"""Content repository interface and models."""

from .models import ContentItem, ContentQuery, Enclosure
from .repository import ContentRepository, SqlContentRepository

__all__ = [
    "ContentItem",
    "ContentQuery",
    "ContentRepository",
    "Enclosure",
    "SqlContentRepository",
]
