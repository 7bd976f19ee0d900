"""APScheduler trigger for the scheduled-notification sweep.

APScheduler decides WHEN the sweep runs; the sweep itself executes as a
taskiq task so it runs wherever the workers run:

    APScheduler (in API process) -> sweep_scheduled_notifications.kiq() -> broker -> worker
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler  # type: ignore[import-untyped]
from apscheduler.triggers.interval import IntervalTrigger  # type: ignore[import-untyped]

from dispatch_service.core.settings import get_notification_settings

logger = logging.getLogger(__name__)

SWEEP_JOB_ID = "sweep_scheduled_notifications"

scheduler = AsyncIOScheduler(
    timezone="UTC",
    job_defaults={
        "coalesce": True,  # Combine missed runs into one
        "max_instances": 1,  # Never overlap a tick with itself
        "misfire_grace_time": 60,
    },
)


async def _schedule_sweep() -> None:
    """Wrapper to properly await the Taskiq kiq() call."""
    from dispatch_service.workers.notifications.tasks import sweep_scheduled_notifications

    await sweep_scheduled_notifications.kiq()


def setup_scheduled_jobs() -> None:
    """Register the sweep job. Call after the broker has started."""
    interval = get_notification_settings().sweep_interval_minutes
    scheduler.add_job(
        _schedule_sweep,
        trigger=IntervalTrigger(minutes=interval),
        id=SWEEP_JOB_ID,
        name="Promote due scheduled notifications",
        replace_existing=True,
    )
    logger.info(
        "Scheduled jobs configured",
        extra={"job_id": SWEEP_JOB_ID, "interval_minutes": interval, "operation": "scheduler.setup"},
    )


def start_scheduler() -> None:
    setup_scheduled_jobs()
    if not scheduler.running:
        scheduler.start()
        logger.info("APScheduler started")


def stop_scheduler() -> None:
    if scheduler.running:
        scheduler.shutdown(wait=False)
        logger.info("APScheduler stopped")
