"""Notification task definitions.

This module provides:
- Delivery of one queued notification (kicked by the dispatch queue)
- The scheduled-notification sweep (kicked every minute by APScheduler)
"""

from __future__ import annotations

import logging
from uuid import UUID

from dispatch_service.features.notifications.service import NotificationService
from dispatch_service.infra.database.session import get_async_session
from dispatch_service.infra.logging import log_context
from dispatch_service.infra.tasks.broker import broker

logger = logging.getLogger(__name__)


@broker.task(task_name="notifications.process", retry_on_error=True, max_retries=3)
async def process_notification(notification_id: str) -> dict:
    """Deliver one notification.

    Unexpected channel errors propagate after the record has been marked
    FAILED, so the retry middleware redelivers the job with backoff.

    Returns:
        Dictionary with the resulting status, or ``skipped`` when the record
        was missing, already handled or claimed by another worker.
    """
    with log_context(notification_id=notification_id, task="notifications.process"):
        async with get_async_session() as session:
            outcome = await NotificationService(session).process(UUID(notification_id))

        if outcome is None:
            return {"notification_id": notification_id, "status": "skipped"}
        return {
            "notification_id": notification_id,
            "status": str(outcome.status),
            "error_message": outcome.error_message,
        }


@broker.task(task_name="notifications.sweep")
async def sweep_scheduled_notifications() -> dict:
    """Promote due scheduled notifications and resubmit stranded jobs.

    Scheduled: every minute (via APScheduler).
    """
    with log_context(task="notifications.sweep"):
        async with get_async_session() as session:
            result = await NotificationService(session).sweep()

        counts = {
            "queued": result.queued,
            "expired": result.expired,
            "skipped": result.skipped,
            "requeued": result.requeued,
        }
        logger.debug("Sweep finished", extra=counts)
        return counts
