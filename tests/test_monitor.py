"""Tests for validation sweeps and validation history."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from feedserve.feeds.models import FeedFormat
from feedserve.validator.models import ValidationResult
from feedserve.validator.monitor import (
    ITEM_RESULT_TTL,
    LAST_SWEEP_KEY,
    SweepTarget,
    ValidationMonitor,
)
from feedserve.validator.validator import FeedValidator

TARGETS = [
    SweepTarget("rss2", "https://example.com/feed/rss2/", FeedFormat.RSS2),
    SweepTarget("atom", "https://example.com/feed/atom/", FeedFormat.ATOM),
    SweepTarget("json", "https://example.com/feed/json/", FeedFormat.JSON),
]


def _fake_validate(source, format_hint):
    if "atom" in source:
        return ValidationResult(feed_type="atom", source=source, errors=["Failed to fetch feed: ConnectTimeout"])
    if "json" in source:
        raise RuntimeError("parser exploded")
    return ValidationResult(feed_type="rss2", source=source)


@pytest.fixture
def validator():
    validator = MagicMock(spec=FeedValidator)
    validator.validate = AsyncMock(side_effect=_fake_validate)
    return validator


@pytest.fixture
def monitor(validator, fake_redis, settings):
    return ValidationMonitor(validator, fake_redis, settings)


@pytest.mark.asyncio
async def test_sweep_isolates_failures(monitor, validator):
    report = await monitor.run_sweep(TARGETS)

    assert validator.validate.await_count == 3
    assert report.results["rss2"].valid is True
    assert report.results["atom"].valid is False
    assert report.results["json"].valid is False
    assert "parser exploded" in report.results["json"].errors[0]
    assert report.all_valid is False


@pytest.mark.asyncio
async def test_sweep_report_is_stored(monitor, fake_redis):
    report = await monitor.run_sweep(TARGETS)

    assert LAST_SWEEP_KEY in fake_redis.values
    stored = await monitor.last_sweep()
    assert stored.timestamp == report.timestamp
    assert set(stored.results) == {"rss2", "atom", "json"}
    assert stored.results["atom"].errors == report.results["atom"].errors


@pytest.mark.asyncio
async def test_last_sweep_empty(monitor):
    assert await monitor.last_sweep() is None


@pytest.mark.asyncio
async def test_alert_sent_per_invalid_feed(validator, fake_redis, settings):
    settings = settings.model_copy(
        update={
            "mailgun_api_key": "key-test",
            "mailgun_domain": "mg.example.com",
            "alert_email": "ops@example.com",
        }
    )
    monitor = ValidationMonitor(validator, fake_redis, settings)

    with patch(
        "feedserve.validator.monitor.send_validation_alert_email",
        new=AsyncMock(return_value=True),
    ) as send:
        await monitor.run_sweep(TARGETS, alert=True)

    assert send.await_count == 2
    alerted = {call.args[1] for call in send.await_args_list}
    assert alerted == {"atom", "json"}


@pytest.mark.asyncio
async def test_no_alert_without_email_config(monitor):
    with patch(
        "feedserve.validator.monitor.send_validation_alert_email", new=AsyncMock()
    ) as send:
        await monitor.run_sweep(TARGETS, alert=True)

    send.assert_not_awaited()


@pytest.mark.asyncio
async def test_no_alert_when_disabled(validator, fake_redis, settings):
    settings = settings.model_copy(
        update={"mailgun_api_key": "k", "mailgun_domain": "d", "alert_email": "ops@example.com"}
    )
    monitor = ValidationMonitor(validator, fake_redis, settings)

    with patch(
        "feedserve.validator.monitor.send_validation_alert_email", new=AsyncMock()
    ) as send:
        await monitor.run_sweep(TARGETS)

    send.assert_not_awaited()


@pytest.mark.asyncio
async def test_item_results_expire_after_thirty_days(monitor, clock):
    result = ValidationResult(feed_type="rss2", warnings=["Enclosure length is 0"])

    await monitor.record_item_result(42, FeedFormat.RSS2, result)

    stored = await monitor.item_result(42, FeedFormat.RSS2)
    assert stored.warnings == result.warnings
    assert stored.valid is True
    assert await monitor.item_result(42, FeedFormat.ATOM) is None

    clock.advance(ITEM_RESULT_TTL)
    assert await monitor.item_result(42, FeedFormat.RSS2) is None
