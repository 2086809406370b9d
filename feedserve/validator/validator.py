"""Structural, performance and security checks for produced feeds."""

import json
import logging
import re
import time
import xml.etree.ElementTree as ET
from collections.abc import Mapping
from datetime import datetime, timezone
from urllib.parse import urlparse

import httpx

from feedserve.errors import TransportFailure
from feedserve.feeds.models import FeedFormat
from feedserve.validator.models import PerformanceMetrics, ValidationResult

logger = logging.getLogger(__name__)

USER_AGENT = "FeedServe Feed Validator/1.0"

ATOM_NS = "http://www.w3.org/2005/Atom"
NAMESPACES = {"atom": ATOM_NS}

EXPECTED_CONTENT_TYPES = {
    FeedFormat.RSS2: ("application/rss+xml", "application/xml", "text/xml"),
    FeedFormat.ATOM: ("application/atom+xml", "application/xml", "text/xml"),
    FeedFormat.JSON: ("application/json", "application/feed+json"),
}

# Namespaces worth suggesting for RSS 2.0
SUGGESTED_NAMESPACES = {
    "content": "http://purl.org/rss/1.0/modules/content/",
    "dc": "http://purl.org/dc/elements/1.1/",
    "atom": ATOM_NS,
}

RECOMMENDED_HEADERS = ("X-Content-Type-Options", "X-Frame-Options")

SLOW_LOAD_MS = 5000
NOTICEABLE_LOAD_MS = 2000
LARGE_FEED_BYTES = 1024 * 1024

# Namespace declarations legitimately carry http:// URIs
XMLNS_DECLARATION = re.compile(r"""xmlns(:[\w.-]+)?\s*=\s*("[^"]*"|'[^']*')""")


def is_valid_url(value: str) -> bool:
    """Absolute http(s) URL with a host."""
    parsed = urlparse(value.strip())
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def coerce_format(format_hint: FeedFormat | str) -> FeedFormat:
    if isinstance(format_hint, FeedFormat):
        return format_hint
    return FeedFormat(format_hint.lower())


def _local(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


class FeedValidator:
    """Validates feeds from a live URL or from rendered bytes.

    Holds no state between calls. Every check runs and appends to the
    result, so a single call reports all problems found.
    """

    def __init__(self, timeout: float = 15.0):
        self.timeout = timeout

    async def validate(
        self,
        source: str | bytes,
        format_hint: FeedFormat | str = FeedFormat.RSS2,
        headers: Mapping[str, str] | None = None,
    ) -> ValidationResult:
        """
        Validate a feed.

        Args:
            source: Feed URL to fetch, or already-rendered bytes
            format_hint: Expected format (rss2, atom, json)
            headers: Response headers to check when ``source`` is bytes

        Returns:
            ValidationResult; transport failures are reported as errors
        """
        fmt = coerce_format(format_hint)
        if isinstance(source, bytes):
            return self.validate_content(source, fmt, headers=headers)
        return await self.validate_url(source, fmt)

    async def fetch(self, url: str) -> httpx.Response:
        """GET ``url``.

        Raises:
            TransportFailure: On timeout or connection error
        """
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": USER_AGENT},
            ) as client:
                return await client.get(url)
        except httpx.HTTPError as e:
            raise TransportFailure(f"{e.__class__.__name__}: {e}") from e

    async def validate_url(self, url: str, fmt: FeedFormat) -> ValidationResult:
        """Fetch ``url`` and validate the response."""
        start = time.perf_counter()
        try:
            response = await self.fetch(url)
        except TransportFailure as e:
            logger.warning(f"Failed to fetch feed {url}: {e}")
            return ValidationResult(
                feed_type=fmt.value,
                source=url,
                errors=[f"Failed to fetch feed: {e}"],
                performance=PerformanceMetrics(
                    load_time_ms=(time.perf_counter() - start) * 1000
                ),
                checked_at=datetime.now(timezone.utc),
            )

        load_time_ms = (time.perf_counter() - start) * 1000
        content = response.content

        if response.status_code != 200:
            return ValidationResult(
                feed_type=fmt.value,
                source=url,
                errors=[f"HTTP {response.status_code} response code"],
                performance=PerformanceMetrics(
                    load_time_ms=load_time_ms,
                    size_bytes=len(content),
                    response_code=response.status_code,
                ),
                checked_at=datetime.now(timezone.utc),
            )

        return self.validate_content(
            content,
            fmt,
            headers=response.headers,
            load_time_ms=load_time_ms,
            response_code=response.status_code,
            source=url,
        )

    def validate_content(
        self,
        content: bytes,
        fmt: FeedFormat,
        headers: Mapping[str, str] | None = None,
        load_time_ms: float = 0.0,
        response_code: int | None = 200,
        source: str = "<bytes>",
    ) -> ValidationResult:
        """Run every content, performance and security check on ``content``.

        Header checks are skipped when ``headers`` is None.
        """
        result = ValidationResult(
            feed_type=fmt.value,
            source=source,
            performance=PerformanceMetrics(
                load_time_ms=load_time_ms,
                size_bytes=len(content),
                response_code=response_code,
            ),
            checked_at=datetime.now(timezone.utc),
        )
        lowered = {k.lower(): v for k, v in headers.items()} if headers is not None else None

        if lowered is not None:
            self._check_content_type(lowered.get("content-type", ""), fmt, result)

        text = content.decode("utf-8", errors="replace")

        if fmt in (FeedFormat.RSS2, FeedFormat.ATOM):
            self._check_xml(content, text, fmt, result)
        else:
            self._check_json(content, result)

        self._check_performance(result)
        self._check_security(text, lowered, result)
        self._check_encoding(content, result)

        return result

    def _check_content_type(
        self, content_type: str, fmt: FeedFormat, result: ValidationResult
    ) -> None:
        observed = content_type.lower()
        if not any(expected in observed for expected in EXPECTED_CONTENT_TYPES[fmt]):
            result.warnings.append(f"Unexpected content-type: {content_type or '(none)'}")

    def _check_xml(
        self, content: bytes, text: str, fmt: FeedFormat, result: ValidationResult
    ) -> None:
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            result.errors.append(f"XML Error: {e}")
            return

        if fmt == FeedFormat.RSS2:
            self._check_rss2(root, result)
            self._check_namespaces(text, result)
        else:
            self._check_atom(root, result)

    def _check_rss2(self, root: ET.Element, result: ValidationResult) -> None:
        if root.tag != "rss":
            result.errors.append("RSS feed must have <rss> as root element")
            return

        version = root.get("version", "")
        if version != "2.0":
            result.warnings.append(f"RSS version is {version or '(missing)'}, should be 2.0")

        channel = root.find("channel")
        if channel is None:
            result.errors.append("RSS feed must have <channel> element")
            return

        for element in ("title", "link", "description"):
            if channel.find(element) is None:
                result.errors.append(f"Missing required element: <{element}>")

        items = channel.findall("item")
        if not items:
            result.warnings.append("No items found in feed")
            return

        result.info.append(f"Feed contains {len(items)} items")
        for item in items:
            self._check_rss2_item(item, result)

    def _check_rss2_item(self, item: ET.Element, result: ValidationResult) -> None:
        if item.find("title") is None and item.find("description") is None:
            result.errors.append("RSS item must have either title or description")

        guid = item.find("guid")
        if guid is not None and guid.get("isPermaLink", "true").lower() == "true":
            if not is_valid_url(guid.text or ""):
                result.warnings.append("GUID marked as permalink but is not a valid URL")

        for enclosure in item.findall("enclosure"):
            self._check_enclosure(
                enclosure.get("url", ""),
                enclosure.get("length"),
                enclosure.get("type", ""),
                result,
            )

    def _check_enclosure(
        self, url: str, length: str | None, mime_type: str, result: ValidationResult
    ) -> None:
        if not url:
            result.errors.append("Enclosure missing url attribute")
        elif not is_valid_url(url):
            result.warnings.append(f"Enclosure URL is not valid: {url}")

        if length is None:
            result.errors.append("Enclosure missing length attribute")
        elif length.strip() in ("", "0"):
            result.warnings.append("Enclosure length is 0 (common podcast issue)")

        if not mime_type:
            result.warnings.append("Enclosure missing MIME type")

    def _check_atom(self, root: ET.Element, result: ValidationResult) -> None:
        if _local(root.tag) != "feed":
            result.errors.append("Atom feed must have <feed> as root element")
            return

        for element in ("id", "title", "updated"):
            if root.find(f"atom:{element}", NAMESPACES) is None:
                result.errors.append(f"Missing required Atom element: <{element}>")

        entries = root.findall("atom:entry", NAMESPACES)
        if not entries:
            result.warnings.append("No entries found in Atom feed")
            return

        result.info.append(f"Feed contains {len(entries)} entries")
        for entry in entries:
            missing = [
                element
                for element in ("id", "title", "updated")
                if entry.find(f"atom:{element}", NAMESPACES) is None
            ]
            if missing:
                fields = ", ".join(f"<{m}>" for m in missing)
                result.errors.append(f"Atom entry missing required element(s): {fields}")

            for link in entry.findall("atom:link", NAMESPACES):
                if link.get("rel") == "enclosure":
                    self._check_enclosure(
                        link.get("href", ""),
                        link.get("length", "0"),
                        link.get("type", ""),
                        result,
                    )

    def _check_namespaces(self, text: str, result: ValidationResult) -> None:
        for prefix in SUGGESTED_NAMESPACES:
            if f"xmlns:{prefix}=" not in text:
                result.info.append(
                    f"Consider adding {prefix} namespace for enhanced functionality"
                )

    def _check_json(self, content: bytes, result: ValidationResult) -> None:
        try:
            data = json.loads(content)
        except ValueError as e:
            result.errors.append(f"Invalid JSON: {e}")
            return

        if not isinstance(data, dict):
            result.errors.append("JSON Feed must be a JSON object")
            return

        if "version" not in data:
            result.errors.append("JSON Feed missing version")
        if "title" not in data:
            result.errors.append("JSON Feed missing title")

        items = data.get("items")
        if items is None:
            result.warnings.append("No items found in JSON Feed")
            return
        if not isinstance(items, list):
            result.errors.append("JSON Feed items must be an array")
            return

        result.info.append(f"Feed contains {len(items)} items")
        for item in items:
            if not isinstance(item, dict) or "id" not in item:
                result.errors.append("JSON Feed item missing id")
                continue
            attachments = item.get("attachments") or []
            if not isinstance(attachments, list):
                result.errors.append("JSON Feed attachments must be an array")
                continue
            for attachment in attachments:
                if not isinstance(attachment, dict):
                    result.errors.append("JSON Feed attachment must be an object")
                    continue
                if not attachment.get("url"):
                    result.errors.append("JSON Feed attachment missing url")
                if attachment.get("size_in_bytes") == 0:
                    result.warnings.append("Attachment size is 0 (common podcast issue)")

    def _check_performance(self, result: ValidationResult) -> None:
        load_time_ms = result.performance.load_time_ms
        size = result.performance.size_bytes

        if load_time_ms > SLOW_LOAD_MS:
            result.warnings.append(
                f"Slow feed load time: {load_time_ms / 1000:.2f} seconds"
            )
        elif load_time_ms > NOTICEABLE_LOAD_MS:
            result.info.append(
                f"Feed load time: {load_time_ms / 1000:.2f} seconds (could be improved)"
            )

        if size > LARGE_FEED_BYTES:
            result.warnings.append(f"Large feed size: {size / 1024 / 1024:.2f} MB")

    def _check_security(
        self,
        text: str,
        headers: Mapping[str, str] | None,
        result: ValidationResult,
    ) -> None:
        if headers is not None:
            for header in RECOMMENDED_HEADERS:
                if header.lower() not in headers:
                    result.info.append(f"Consider adding {header} security header")

        if "http://" in XMLNS_DECLARATION.sub("", text):
            result.warnings.append("Feed contains non-HTTPS URLs")

    def _check_encoding(self, content: bytes, result: ValidationResult) -> None:
        try:
            content.decode("utf-8")
        except UnicodeDecodeError:
            result.warnings.append("Feed content may have encoding issues")
