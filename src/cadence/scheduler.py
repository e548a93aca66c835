"""Periodic backfill of every recurring series."""

import logging

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from .backfill import BackfillEngine, BackfillSummary
from .config import Config, load_config
from .workflows import get_engine

logger = logging.getLogger(__name__)


def parse_time(value: str) -> tuple[int, int]:
    """Parse "HH:MM" into (hour, minute). Raises ValueError."""
    hour, minute = map(int, value.split(":"))
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Time out of range: {value}")
    return hour, minute


def run_backfill(engine: BackfillEngine) -> BackfillSummary:
    """Scheduled job: catch up every series against the current time."""
    logger.info("Running scheduled backfill")
    summary = engine.backfill_all()
    if summary.error:
        logger.error(f"Scheduled backfill failed: {summary.error}")
    for result in summary.results:
        for failed in result.failed:
            logger.warning(f"Series {result.series_id}: {failed.date.isoformat()} not created ({failed.reason})")
    return summary


def setup_scheduler(engine: BackfillEngine, config: Config | None = None, scheduler=None):
    """Set up the daily backfill job in the reporting timezone."""
    if config is None:
        config = load_config()

    scheduler = scheduler or BlockingScheduler(timezone=config.timezone)

    try:
        hour, minute = parse_time(config.backfill_time)
    except ValueError:
        logger.warning(f"Invalid backfill time format: {config.backfill_time}, using 00:00")
        hour, minute = 0, 0

    scheduler.add_job(
        run_backfill,
        CronTrigger(hour=hour, minute=minute, timezone=config.timezone),
        args=[engine],
        id="recurring_backfill",
        replace_existing=True,
    )
    logger.info(f"Scheduled backfill at {hour:02d}:{minute:02d} ({config.timezone})")
    return scheduler


def run_scheduler(config: Config | None = None) -> None:
    """Run the backfill scheduler in the foreground."""
    config = config or load_config()
    engine = get_engine(config)
    scheduler = setup_scheduler(engine, config)

    # Catch up in case the process was down at the scheduled time
    run_backfill(engine)

    logger.info("Starting backfill scheduler...")
    scheduler.start()
