"""HTTP conditional-request and content-encoding negotiation for feeds."""

import asyncio
import gzip
import hashlib
import logging
from collections.abc import Mapping
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

from feedserve.config_store import ConfigSnapshot
from feedserve.content.repository import ContentRepository
from feedserve.errors import UpstreamQueryFailure
from feedserve.feeds.models import FeedDefinition, FeedFormat, FreshnessToken, Negotiation

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

# Feeds are public documents meant to be consumed cross-origin
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "If-Modified-Since, If-None-Match, Accept-Encoding",
    "Access-Control-Expose-Headers": "ETag, Last-Modified",
}


def make_etag(site_identity: str, fmt: FeedFormat, last_modified: datetime) -> str:
    """Deterministic ETag from site identity, format and modification time."""
    raw = f"{site_identity}{fmt.value}{int(last_modified.timestamp())}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:32]


def http_date(value: datetime) -> str:
    """Format a datetime as an IMF-fixdate (``Sun, 06 Nov 1994 08:49:37 GMT``)."""
    return format_datetime(value.astimezone(timezone.utc), usegmt=True)


def parse_http_date(value: str | None) -> datetime | None:
    """Parse an HTTP date header. Returns None for missing or malformed values."""
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError):
        return None
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalize_tag(tag: str) -> str:
    tag = tag.strip()
    if tag.startswith("W/"):
        tag = tag[2:]
    return tag.strip('"')


def etag_matches(if_none_match: str | None, etag: str) -> bool:
    """Compare an ``If-None-Match`` header to ``etag``, quoted or not."""
    if not if_none_match:
        return False
    return any(_normalize_tag(tag) == etag for tag in if_none_match.split(","))


def accepts_gzip(accept_encoding: str | None) -> bool:
    """True when the client advertises gzip with a non-zero quality."""
    if not accept_encoding:
        return False
    for part in accept_encoding.split(","):
        coding, _, params = part.strip().partition(";")
        if coding.strip().lower() not in ("gzip", "x-gzip"):
            continue
        params = params.strip().replace(" ", "")
        if params.startswith("q="):
            try:
                return float(params[2:]) > 0
            except ValueError:
                return False
        return True
    return False


def compress(body: bytes) -> bytes:
    """Gzip a body. ``mtime=0`` keeps the output deterministic."""
    return gzip.compress(body, mtime=0)


class HttpCachingNegotiator:
    """Decides between a 304 short-circuit and a full render."""

    def __init__(
        self,
        repository: ContentRepository,
        site_identity: str,
        query_timeout: float = 30.0,
    ):
        self.repository = repository
        self.site_identity = site_identity
        self.query_timeout = query_timeout

    async def freshness(self, definition: FeedDefinition, fmt: FeedFormat) -> FreshnessToken:
        """
        Compute freshness metadata for a feed.

        ``last_modified`` is the newest modification across the definition's
        content types sitewide, ignoring taxonomy and date filters. It is an
        upper bound on the selection's own freshness and is truncated to whole
        seconds to match HTTP date precision.

        Raises:
            UpstreamQueryFailure: If the repository lookup fails or times out
        """
        try:
            latest = await asyncio.wait_for(
                self.repository.latest_modified(definition.content_types),
                timeout=self.query_timeout,
            )
        except asyncio.TimeoutError as e:
            raise UpstreamQueryFailure(
                f"Freshness lookup timed out after {self.query_timeout}s"
            ) from e
        except Exception as e:
            logger.error(f"Freshness lookup failed for feed {definition.slug}", exc_info=True)
            raise UpstreamQueryFailure(str(e)) from e

        last_modified = (latest or EPOCH).replace(microsecond=0)
        return FreshnessToken(
            last_modified=last_modified,
            etag=make_etag(self.site_identity, fmt, last_modified),
        )

    async def negotiate(
        self,
        definition: FeedDefinition,
        fmt: FeedFormat,
        request_headers: Mapping[str, str],
        config: ConfigSnapshot,
        allow_compression: bool = True,
    ) -> Negotiation:
        """
        Evaluate conditional headers and encoding for one request.

        A 304 is returned when either ``If-Modified-Since`` is at or after
        ``last_modified`` or ``If-None-Match`` equals the current ETag. Either
        match alone is sufficient. Conditional headers are ignored unless the
        ``enable_conditional_requests`` capability is on.

        Args:
            definition: Resolved feed definition
            fmt: Output format
            request_headers: Incoming headers (any case)
            config: Configuration snapshot for capability flags
            allow_compression: False when the body is already encoded or
                streamed by another layer

        Returns:
            Negotiation with ``not_modified`` set for a 304, otherwise the
            freshness token and gzip decision
        """
        headers = {k.lower(): v for k, v in request_headers.items()}
        freshness = await self.freshness(definition, fmt)

        if config.get_bool("enable_conditional_requests", True):
            since = parse_http_date(headers.get("if-modified-since"))
            modified_match = since is not None and since >= freshness.last_modified
            etag_match = config.get_bool("enable_etag", True) and etag_matches(
                headers.get("if-none-match"), freshness.etag
            )
            if modified_match or etag_match:
                logger.debug(f"304 for feed {definition.slug} ({fmt.value})")
                return Negotiation(not_modified=True, freshness=freshness)

        use_gzip = (
            allow_compression
            and config.get_bool("enable_gzip", True)
            and accepts_gzip(headers.get("accept-encoding"))
        )
        return Negotiation(not_modified=False, freshness=freshness, gzip=use_gzip)

    @staticmethod
    def response_headers(
        fmt: FeedFormat,
        negotiation: Negotiation,
        config: ConfigSnapshot,
    ) -> dict[str, str]:
        """Headers for a 200 (or, with ``not_modified``, a 304) feed response."""
        max_age = config.get_int("cache_max_age", config.settings.cache_max_age_seconds)
        headers: dict[str, str] = {"Cache-Control": f"public, max-age={max_age}"}

        freshness = negotiation.freshness
        if freshness is not None:
            headers["Last-Modified"] = http_date(freshness.last_modified)
            if config.get_bool("enable_etag", True):
                headers["ETag"] = freshness.quoted_etag

        if negotiation.not_modified:
            return headers

        headers["Content-Type"] = fmt.content_type
        if config.get_bool("enable_gzip", True):
            headers["Vary"] = "Accept-Encoding"
        if negotiation.gzip:
            headers["Content-Encoding"] = "gzip"
        if config.get_bool("enable_security_headers", True):
            headers.update(SECURITY_HEADERS)
        headers.update(CORS_HEADERS)
        return headers
