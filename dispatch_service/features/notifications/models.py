"""SQLAlchemy models for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from dispatch_service.core.database import (
    Base,
    JSONDocument,
    TimestampMixin,
    UTCDateTime,
    UUIDv7PKMixin,
)
from dispatch_service.features.notifications.enums import (
    NotificationPriority,
    NotificationStatus,
)


class Notification(Base, UUIDv7PKMixin, TimestampMixin):
    """A single notification addressed to one user over one channel.

    Content (title/body/data) is immutable after creation; only status,
    timestamps and error bookkeeping change as the record moves through
    its lifecycle.

    Indexes:
        - (user_id, workspace_id, type, status) for inbox and unread queries
        - (status, scheduled_at) for the scheduled sweep
        - (status, enqueued_at) for requeueing stranded jobs
        - (workspace_id, status) for stats
    """

    __tablename__ = "notifications"

    # Ownership
    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        index=True,
        comment="Recipient user identifier",
    )
    workspace_id: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        index=True,
        comment="Optional workspace scope",
    )

    # Classification
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Channel: push, email, sms, in_app",
    )
    priority: Mapped[str] = mapped_column(
        String(20),
        default=NotificationPriority.NORMAL,
        nullable=False,
        comment="Priority: urgent, high, normal, low",
    )
    category: Mapped[str | None] = mapped_column(
        String(100),
        nullable=True,
        comment="Free-form grouping tag",
    )

    # Content
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    body: Mapped[str] = mapped_column(Text(), nullable=False)
    data: Mapped[dict[str, Any] | None] = mapped_column(
        JSONDocument,
        nullable=True,
        comment="Channel payload (email, phone, htmlBody, custom keys)",
    )
    image_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    action_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)

    # Timing
    scheduled_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="When to dispatch (null = immediately)",
    )
    expires_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="Never deliver after this instant",
    )
    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # Outcome
    status: Mapped[str] = mapped_column(
        String(20),
        default=NotificationStatus.QUEUED,
        nullable=False,
        comment="pending, queued, processing, sent, delivered, read, failed",
    )
    error_message: Mapped[str | None] = mapped_column(
        Text(),
        nullable=True,
        comment="Last failure reason (cleared on retry)",
    )
    retry_count: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        comment="Failed processing attempts (never reset)",
    )

    # Dispatch job and delivery claim
    enqueued_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="When the latest dispatch job was submitted",
    )
    claimed_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="When a worker claimed the record for delivery",
    )
    awaiting_redelivery: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Failed on an unexpected error; the queue may redeliver it",
    )

    __table_args__ = (
        Index("ix_notifications_user_inbox", "user_id", "workspace_id", "type", "status"),
        Index("ix_notifications_status_scheduled", "status", "scheduled_at"),
        Index("ix_notifications_status_enqueued", "status", "enqueued_at"),
        Index("ix_notifications_workspace_status", "workspace_id", "status"),
    )

    def is_expired(self, now: datetime) -> bool:
        """Whether the delivery deadline has passed at ``now``."""
        return self.expires_at is not None and self.expires_at < now

    def __repr__(self) -> str:
        return f"<Notification(id={self.id}, type={self.type}, status={self.status})>"
