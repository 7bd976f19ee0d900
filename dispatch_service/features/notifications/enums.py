"""Enumerations for the notifications feature."""

from __future__ import annotations

from enum import StrEnum


class NotificationType(StrEnum):
    """Delivery channel, fixed at creation."""

    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"
    IN_APP = "in_app"


class NotificationPriority(StrEnum):
    """Caller-facing priority."""

    URGENT = "urgent"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def queue_priority(self) -> int:
        """Queue priority where a lower number is served first (urgent=1, low=4)."""
        return _QUEUE_PRIORITY[self]


_QUEUE_PRIORITY = {
    NotificationPriority.URGENT: 1,
    NotificationPriority.HIGH: 2,
    NotificationPriority.NORMAL: 3,
    NotificationPriority.LOW: 4,
}


class NotificationStatus(StrEnum):
    """Lifecycle status.

    PENDING -> QUEUED -> PROCESSING -> SENT -> READ
                                    -> DELIVERED (in-app)
                                    -> FAILED -> QUEUED (manual retry)
    """

    PENDING = "pending"
    QUEUED = "queued"
    PROCESSING = "processing"
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"
