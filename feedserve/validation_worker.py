"""Worker that validates every enabled feed on a schedule."""

import asyncio
import logging

from redis.asyncio import Redis

from feedserve.config import get_settings
from feedserve.db.session import dispose_db_engine, get_sessionmaker
from feedserve.feeds.pipeline import FeedEngine, build_default_engine
from feedserve.logging import setup_logging

logger = logging.getLogger(__name__)

IDLE_CHECK_SECONDS = 60


async def run_once(engine: FeedEngine) -> bool:
    """Run one sweep if monitoring is enabled. Returns True if a sweep ran."""
    config = await engine.config_store.snapshot()
    if not config.get_bool("enable_monitoring", False):
        logger.debug("Monitoring disabled, skipping sweep")
        return False

    report = await engine.run_validation_sweep()
    invalid = [name for name, result in report.results.items() if not result.valid]
    if invalid:
        logger.warning(f"Invalid feeds: {', '.join(invalid)}")
    return True


async def worker_loop() -> None:
    """Main worker loop that runs validation sweeps."""
    settings = get_settings()

    redis = Redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=False,
    )
    engine = build_default_engine(settings, redis, get_sessionmaker())
    interval = settings.validation_interval_minutes * 60

    logger.info("Validation worker started")
    logger.info(f"Sweep interval: {settings.validation_interval_minutes} minutes")

    while True:
        try:
            ran = await run_once(engine)
            await asyncio.sleep(interval if ran else IDLE_CHECK_SECONDS)
        except asyncio.CancelledError:
            logger.info("Worker received shutdown signal")
            break
        except Exception as e:
            logger.error(f"Unexpected error in worker loop: {e}", exc_info=True)
            await asyncio.sleep(IDLE_CHECK_SECONDS)

    await redis.aclose()
    await dispose_db_engine()
    logger.info("Validation worker stopped")


def main():
    """Entry point for the validation worker."""
    setup_logging("feedserve-worker")
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down...")


if __name__ == "__main__":
    main()
