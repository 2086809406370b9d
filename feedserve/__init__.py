"""FeedServe - syndication feed delivery engine."""

__version__ = "1.0.0"
