"""Tests for conditional-request negotiation and response headers."""

import gzip
from datetime import timedelta

import pytest

from feedserve.config_store import ConfigSnapshot
from feedserve.content.repository import ContentRepository
from feedserve.errors import UpstreamQueryFailure
from feedserve.feeds.models import FeedDefinition, FeedFormat, Negotiation
from feedserve.feeds.negotiator import (
    EPOCH,
    HttpCachingNegotiator,
    accepts_gzip,
    compress,
    etag_matches,
    http_date,
    make_etag,
    parse_http_date,
)


class FixedRepository(ContentRepository):
    def __init__(self, latest=None, error: Exception | None = None):
        super().__init__()
        self.latest = latest
        self.error = error

    async def query(self, query):
        return []

    async def latest_modified(self, content_types):
        if self.error:
            raise self.error
        return self.latest

    async def get_item(self, item_id):
        return None


@pytest.fixture
def config(settings):
    return ConfigSnapshot(settings=settings)


@pytest.fixture
def definition():
    return FeedDefinition(slug="rss2", builtin=True)


@pytest.fixture
def last_modified(base_time):
    return base_time.replace(microsecond=250_000)


@pytest.fixture
def negotiator(last_modified):
    return HttpCachingNegotiator(FixedRepository(last_modified), "https://example.com")


@pytest.mark.asyncio
async def test_freshness_truncates_to_seconds(negotiator, definition, last_modified):
    token = await negotiator.freshness(definition, FeedFormat.RSS2)

    assert token.last_modified == last_modified.replace(microsecond=0)
    assert token.etag == make_etag("https://example.com", FeedFormat.RSS2, token.last_modified)
    assert len(token.etag) == 32


@pytest.mark.asyncio
async def test_freshness_empty_repository_uses_epoch(definition):
    negotiator = HttpCachingNegotiator(FixedRepository(None), "https://example.com")

    token = await negotiator.freshness(definition, FeedFormat.ATOM)

    assert token.last_modified == EPOCH


@pytest.mark.asyncio
async def test_freshness_wraps_repository_errors(definition):
    negotiator = HttpCachingNegotiator(
        FixedRepository(error=ConnectionError("gone")), "https://example.com"
    )

    with pytest.raises(UpstreamQueryFailure):
        await negotiator.freshness(definition, FeedFormat.RSS2)


@pytest.mark.asyncio
async def test_etag_stable_across_calls(negotiator, definition):
    first = await negotiator.freshness(definition, FeedFormat.RSS2)
    second = await negotiator.freshness(definition, FeedFormat.RSS2)
    atom = await negotiator.freshness(definition, FeedFormat.ATOM)

    assert first.etag == second.etag
    assert atom.etag != first.etag


@pytest.mark.asyncio
async def test_if_modified_since_equal_returns_304(negotiator, definition, config, last_modified):
    headers = {"If-Modified-Since": http_date(last_modified)}

    result = await negotiator.negotiate(definition, FeedFormat.RSS2, headers, config)

    assert result.not_modified is True


@pytest.mark.asyncio
async def test_if_modified_since_one_second_earlier_returns_200(
    negotiator, definition, config, last_modified
):
    earlier = last_modified.replace(microsecond=0) - timedelta(seconds=1)
    headers = {"If-Modified-Since": http_date(earlier)}

    result = await negotiator.negotiate(definition, FeedFormat.RSS2, headers, config)

    assert result.not_modified is False


@pytest.mark.asyncio
@pytest.mark.parametrize("template", ['"{}"', "{}", 'W/"{}"', '"other", "{}"'])
async def test_if_none_match_forms(negotiator, definition, config, template):
    token = await negotiator.freshness(definition, FeedFormat.RSS2)
    headers = {"if-none-match": template.format(token.etag)}

    result = await negotiator.negotiate(definition, FeedFormat.RSS2, headers, config)

    assert result.not_modified is True


@pytest.mark.asyncio
async def test_either_validator_alone_is_sufficient(
    negotiator, definition, config, last_modified
):
    # Stale date, matching tag
    token = await negotiator.freshness(definition, FeedFormat.RSS2)
    headers = {
        "If-Modified-Since": http_date(last_modified - timedelta(days=1)),
        "If-None-Match": token.quoted_etag,
    }
    assert (await negotiator.negotiate(definition, FeedFormat.RSS2, headers, config)).not_modified

    # Current date, wrong tag
    headers = {
        "If-Modified-Since": http_date(last_modified),
        "If-None-Match": '"stale"',
    }
    assert (await negotiator.negotiate(definition, FeedFormat.RSS2, headers, config)).not_modified


@pytest.mark.asyncio
async def test_conditional_requests_disabled(negotiator, definition, config, last_modified):
    config.options["enable_conditional_requests"] = "0"
    headers = {"If-Modified-Since": http_date(last_modified)}

    result = await negotiator.negotiate(definition, FeedFormat.RSS2, headers, config)

    assert result.not_modified is False


@pytest.mark.asyncio
async def test_etag_disabled_ignores_if_none_match(negotiator, definition, config):
    config.options["enable_etag"] = "0"
    token = await negotiator.freshness(definition, FeedFormat.RSS2)

    result = await negotiator.negotiate(
        definition, FeedFormat.RSS2, {"If-None-Match": token.quoted_etag}, config
    )

    assert result.not_modified is False
    headers = HttpCachingNegotiator.response_headers(FeedFormat.RSS2, result, config)
    assert "ETag" not in headers


@pytest.mark.asyncio
async def test_gzip_negotiation(negotiator, definition, config):
    accepted = await negotiator.negotiate(
        definition, FeedFormat.RSS2, {"Accept-Encoding": "br, gzip;q=0.8"}, config
    )
    refused = await negotiator.negotiate(
        definition, FeedFormat.RSS2, {"Accept-Encoding": "gzip;q=0"}, config
    )
    not_allowed = await negotiator.negotiate(
        definition, FeedFormat.RSS2, {"Accept-Encoding": "gzip"}, config,
        allow_compression=False,
    )

    assert accepted.gzip is True
    assert refused.gzip is False
    assert not_allowed.gzip is False


@pytest.mark.asyncio
async def test_gzip_disabled_by_option(negotiator, definition, config):
    config.options["enable_gzip"] = "off"

    result = await negotiator.negotiate(
        definition, FeedFormat.RSS2, {"Accept-Encoding": "gzip"}, config
    )

    assert result.gzip is False
    assert "Vary" not in HttpCachingNegotiator.response_headers(FeedFormat.RSS2, result, config)


@pytest.mark.asyncio
async def test_response_headers_for_200(negotiator, definition, config):
    result = await negotiator.negotiate(
        definition, FeedFormat.JSON, {"Accept-Encoding": "gzip"}, config
    )

    headers = HttpCachingNegotiator.response_headers(FeedFormat.JSON, result, config)

    assert headers["Content-Type"] == "application/feed+json; charset=utf-8"
    assert headers["Cache-Control"] == "public, max-age=3600"
    assert headers["ETag"] == result.freshness.quoted_etag
    assert headers["Last-Modified"] == http_date(result.freshness.last_modified)
    assert headers["Content-Encoding"] == "gzip"
    assert headers["Vary"] == "Accept-Encoding"
    assert headers["X-Content-Type-Options"] == "nosniff"
    assert headers["Access-Control-Allow-Origin"] == "*"


def test_response_headers_for_304_are_minimal(config, base_time):
    token_negotiation = Negotiation(
        not_modified=True,
        freshness={"last_modified": base_time, "etag": "abc"},
    )
    config.options["cache_max_age"] = "60"

    headers = HttpCachingNegotiator.response_headers(FeedFormat.RSS2, token_negotiation, config)

    assert headers == {
        "Cache-Control": "public, max-age=60",
        "Last-Modified": http_date(base_time),
        "ETag": '"abc"',
    }


def test_security_headers_can_be_disabled(config, base_time):
    config.options["enable_security_headers"] = "0"
    negotiation = Negotiation(
        not_modified=False, freshness={"last_modified": base_time, "etag": "abc"}
    )

    headers = HttpCachingNegotiator.response_headers(FeedFormat.RSS2, negotiation, config)

    assert "X-Frame-Options" not in headers
    assert "Content-Type" in headers


def test_http_date_roundtrip(base_time):
    value = http_date(base_time)

    assert value == "Fri, 01 Mar 2024 12:00:00 GMT"
    assert parse_http_date(value) == base_time


@pytest.mark.parametrize("value", [None, "", "not a date", "Mon, 99 Foo 2024"])
def test_parse_http_date_rejects_garbage(value):
    assert parse_http_date(value) is None


def test_etag_matches_rejects_other_tags():
    assert etag_matches('"abc", W/"def"', "def") is True
    assert etag_matches('"abc"', "abcd") is False
    assert etag_matches(None, "abc") is False


@pytest.mark.parametrize(
    "header,expected",
    [("gzip", True), ("deflate, x-gzip", True), ("identity", False), (None, False)],
)
def test_accepts_gzip(header, expected):
    assert accepts_gzip(header) is expected


def test_compress_is_deterministic():
    body = b"<rss>" + b"x" * 1000 + b"</rss>"

    assert compress(body) == compress(body)
    assert gzip.decompress(compress(body)) == body
