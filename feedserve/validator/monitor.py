"""Scheduled validation sweeps and per-item validation history."""

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from redis.asyncio import Redis

from feedserve.config import Settings
from feedserve.email_service import EmailService, send_validation_alert_email
from feedserve.feeds.models import FeedFormat
from feedserve.validator.models import PerformanceMetrics, SweepReport, ValidationResult
from feedserve.validator.validator import FeedValidator

logger = logging.getLogger(__name__)

LAST_SWEEP_KEY = "fs:validation:last"
ITEM_RESULT_TTL = 30 * 24 * 3600  # 30 days


def _item_key(item_id: int, fmt: FeedFormat) -> str:
    """Generate Redis key for an on-publish validation result."""
    return f"fs:validation:item:{item_id}:{fmt.value}"


@dataclass(frozen=True)
class SweepTarget:
    """One feed to check during a sweep."""

    name: str
    url: str
    format: FeedFormat


class ValidationMonitor:
    """Runs validation sweeps, keeps their history in Redis and sends alerts."""

    def __init__(self, validator: FeedValidator, redis: Redis, settings: Settings):
        self.validator = validator
        self.redis = redis
        self.settings = settings

    async def _validate_target(self, target: SweepTarget) -> ValidationResult:
        try:
            return await self.validator.validate(target.url, target.format)
        except Exception as e:
            logger.error(f"Validation of feed {target.name} crashed", exc_info=True)
            return ValidationResult(
                feed_type=target.format.value,
                source=target.url,
                errors=[f"Validation failed: {e.__class__.__name__}: {e}"],
                performance=PerformanceMetrics(),
                checked_at=datetime.now(timezone.utc),
            )

    async def run_sweep(self, targets: list[SweepTarget], alert: bool = False) -> SweepReport:
        """
        Validate every target and store the report as the latest sweep.

        A failure while validating one feed is recorded in that feed's result
        and never stops the remaining feeds.

        Args:
            targets: Feeds to validate
            alert: Email an alert for each invalid feed

        Returns:
            SweepReport keyed by feed name
        """
        report = SweepReport(timestamp=datetime.now(timezone.utc))

        for target in targets:
            result = await self._validate_target(target)
            report.results[target.name] = result
            if not result.valid:
                logger.warning(
                    f"Feed {target.name} failed validation: {len(result.errors)} error(s)"
                )
                if alert:
                    await self._alert(target, result)

        await self.redis.set(LAST_SWEEP_KEY, report.model_dump_json())
        logger.info(
            f"Validation sweep finished: {len(targets)} feed(s), "
            f"all valid: {report.all_valid}"
        )
        return report

    async def _alert(self, target: SweepTarget, result: ValidationResult) -> None:
        if not self.settings.alert_email or not EmailService(self.settings).is_configured():
            logger.warning(f"Cannot send alert for feed {target.name}: email not configured")
            return
        sent = await send_validation_alert_email(self.settings, target.name, target.url, result)
        if not sent:
            logger.error(f"Alert email for feed {target.name} was not delivered")

    async def last_sweep(self) -> SweepReport | None:
        """Latest stored sweep report, if any."""
        raw = await self.redis.get(LAST_SWEEP_KEY)
        if not raw:
            return None
        return SweepReport.model_validate(json.loads(raw))

    async def record_item_result(
        self, item_id: int, fmt: FeedFormat, result: ValidationResult
    ) -> None:
        """Attach an on-publish validation result to a content item."""
        await self.redis.setex(
            _item_key(item_id, fmt), ITEM_RESULT_TTL, result.model_dump_json()
        )
        if not result.valid:
            logger.warning(
                f"Feed {fmt.value} invalid after change to item {item_id}: {result.errors}"
            )

    async def item_result(self, item_id: int, fmt: FeedFormat) -> ValidationResult | None:
        """On-publish validation result stored for an item, if any."""
        raw = await self.redis.get(_item_key(item_id, fmt))
        if not raw:
            return None
        return ValidationResult.model_validate(json.loads(raw))
