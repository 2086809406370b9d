"""Exception types raised by the feed delivery engine."""


class FeedServeError(Exception):
    """Base class for engine errors."""


class FeedNotFound(FeedServeError):
    """Unknown or disabled feed slug, or an unsupported/disabled format."""

    def __init__(self, path: str):
        super().__init__(f"No feed for path: {path}")
        self.path = path


class UpstreamQueryFailure(FeedServeError):
    """The content repository failed or timed out while building a selection."""


class TransportFailure(FeedServeError):
    """An outbound fetch made by the validator failed (timeout, connection error)."""
