"""
APScheduler entry points for running the trend batch on a schedule.
"""
from __future__ import annotations

import logging
from typing import Callable, Optional

from apscheduler.schedulers.blocking import BlockingScheduler

from trendcycle.errors import AllSourcesFailed
from trendcycle.pipeline import TrendPipeline
from trendcycle.settings import TrendSettings, load_settings

logger = logging.getLogger(__name__)


def make_job(pipeline_factory: Callable[[], TrendPipeline]) -> Callable[[], None]:
    """Wrap one batch run so a failing run is logged and the scheduler keeps going."""

    def job_trends() -> None:
        try:
            pipeline_factory().run()
        except AllSourcesFailed as exc:
            logger.error("Scheduled run skipped: %s", exc)
        except Exception:
            logger.exception("Scheduled run failed")

    return job_trends


def build_scheduler(minute: str = "0", settings: Optional[TrendSettings] = None) -> BlockingScheduler:
    settings = settings or load_settings()
    scheduler = BlockingScheduler(timezone=settings.timezone)
    # Rebuild per run so edits to sources/policy/template apply without a restart.
    job = make_job(lambda: TrendPipeline.from_settings(settings))
    scheduler.add_job(job, "cron", minute=minute, id="trend_cycle", max_instances=1, coalesce=True)
    return scheduler


def run_scheduler(minute: str = "0", settings: Optional[TrendSettings] = None) -> None:
    scheduler = build_scheduler(minute, settings)
    logger.info("Starting trend scheduler (cron minute=%s)", minute)
    try:
        scheduler.start()
    except (KeyboardInterrupt, SystemExit):
        logger.info("Trend scheduler stopped")


if __name__ == "__main__":  # pragma: no cover
    logging.basicConfig(level=logging.INFO)
    run_scheduler()
