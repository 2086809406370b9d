"""Feed definitions, resolution, caching and HTTP negotiation."""

from .models import (
    BUILTIN_FORMATS,
    FeedDefinition,
    FeedFormat,
    FreshnessToken,
    Negotiation,
    OrderBy,
    OrderDirection,
)

__all__ = [
    "BUILTIN_FORMATS",
    "FeedDefinition",
    "FeedFormat",
    "FreshnessToken",
    "Negotiation",
    "OrderBy",
    "OrderDirection",
]
