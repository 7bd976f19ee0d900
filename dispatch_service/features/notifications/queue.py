"""Dispatch queue: hands persisted notifications to delivery workers."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Protocol

from dispatch_service.features.notifications.enums import NotificationPriority

if TYPE_CHECKING:
    from uuid import UUID

    from dispatch_service.core.settings.notifications import NotificationSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SubmissionPolicy:
    """How a dispatch job is submitted.

    Attributes:
        priority: Queue priority, 1 (urgent) to 4 (low); lower is served first
        max_attempts: Delivery attempts before the job is abandoned
        backoff_initial_ms: First retry delay; later retries double it. The
            first attempt is never delayed
    """

    priority: int
    max_attempts: int = 3
    backoff_initial_ms: int = 1000

    @classmethod
    def for_priority(
        cls,
        priority: NotificationPriority | str,
        settings: NotificationSettings | None = None,
    ) -> SubmissionPolicy:
        queue_priority = NotificationPriority(priority).queue_priority
        if settings is None:
            return cls(priority=queue_priority)
        return cls(
            priority=queue_priority,
            max_attempts=settings.queue_max_attempts,
            backoff_initial_ms=settings.queue_backoff_initial_ms,
        )


class DispatchQueue(Protocol):
    """At-least-once job queue keyed by notification id."""

    async def enqueue(self, notification_id: UUID, policy: SubmissionPolicy) -> None: ...


class TaskiqDispatchQueue:
    """Dispatch queue backed by the ``process_notification`` taskiq task.

    AMQP priority queues serve higher numbers first, so the policy priority
    is inverted against the broker's ``max_priority``.
    """

    def __init__(self, max_priority: int = 10) -> None:
        self.max_priority = max_priority

    def broker_priority(self, policy: SubmissionPolicy) -> int:
        return max(0, self.max_priority - policy.priority + 1)

    async def enqueue(self, notification_id: UUID, policy: SubmissionPolicy) -> None:
        # Imported here: the worker module imports the service, which imports this module
        from dispatch_service.workers.notifications.tasks import process_notification

        task = await (
            process_notification.kicker()
            .with_labels(
                priority=self.broker_priority(policy),
                retry_on_error=True,
                max_retries=policy.max_attempts,
                retry_delay=policy.backoff_initial_ms / 1000,
            )
            .kiq(str(notification_id))
        )
        logger.debug(
            "Dispatch job enqueued",
            extra={
                "notification_id": str(notification_id),
                "task_id": task.task_id,
                "priority": policy.priority,
                "operation": "queue.enqueue",
            },
        )
