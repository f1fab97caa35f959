"""Background jobs: periodic adjustment and the daily orchestration."""

import asyncio
import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from cadence.errors import AdjustmentInProgress, CadenceError
from cadence.workflows import Services, run_adjustment, run_daily

logger = logging.getLogger(__name__)


async def adjustment_job(services: Services) -> None:
    """Run one adjustment; errors are logged so the schedule keeps going."""
    try:
        report = await run_adjustment(services)
        logger.info(f"Scheduled adjustment: {report.summary()}")
    except AdjustmentInProgress:
        logger.info("Adjustment already running, skipping this tick")
    except CadenceError as e:
        logger.error(f"Scheduled adjustment failed: {e}")


async def daily_job(services: Services) -> None:
    try:
        report = await run_daily(services)
        logger.info(f"Daily orchestration: {report.status}")
    except CadenceError as e:
        logger.error(f"Daily orchestration failed: {e}")


def setup_scheduler(services: Services) -> AsyncIOScheduler:
    """Set up the recurring jobs.

    Each job keeps a single slot (``max_instances=1``) and missed ticks
    collapse into one (``coalesce=True``). Both jobs go through the flows in
    ``workflows``, which share ``services.lock``, so an adjustment tick waits
    for a daily run in flight and the other way round.
    """
    config = services.config
    scheduler = AsyncIOScheduler(timezone=config.timezone or "Europe/Paris")

    scheduler.add_job(
        adjustment_job,
        IntervalTrigger(minutes=config.adjust_interval_minutes),
        args=[services],
        id="continuous_adjustment",
        max_instances=1,
        coalesce=True,
    )
    logger.info(f"Scheduled continuous adjustment every {config.adjust_interval_minutes} min")

    if config.daily_orchestration_time:
        try:
            hour, minute = map(int, config.daily_orchestration_time.split(":"))
            scheduler.add_job(
                daily_job,
                CronTrigger(hour=hour, minute=minute),
                args=[services],
                id="daily_orchestration",
                max_instances=1,
                coalesce=True,
            )
            logger.info(f"Scheduled daily orchestration at {hour:02d}:{minute:02d}")
        except ValueError:
            logger.warning(f"Invalid daily orchestration time format: {config.daily_orchestration_time}")

    return scheduler


def serve(services: Services) -> None:
    """Run the scheduler until interrupted."""

    async def main() -> None:
        scheduler = setup_scheduler(services)
        scheduler.start()
        logger.info("Scheduler started")
        try:
            await asyncio.Event().wait()
        finally:
            scheduler.shutdown(wait=False)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Scheduler stopped")
