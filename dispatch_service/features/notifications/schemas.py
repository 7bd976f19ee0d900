"""Pydantic schemas for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from dispatch_service.features.notifications.enums import (
    NotificationPriority,
    NotificationStatus,
    NotificationType,
)


class NotificationContent(BaseModel):
    """Fields shared by single and bulk send requests."""

    workspace_id: str | None = Field(default=None, max_length=255)
    type: NotificationType = Field(..., description="Delivery channel")
    priority: NotificationPriority = Field(default=NotificationPriority.NORMAL)
    category: str | None = Field(default=None, max_length=100)
    title: str = Field(..., min_length=1, max_length=500)
    body: str = Field(..., min_length=1)
    data: dict[str, Any] | None = Field(
        default=None,
        description="Channel payload; email reads data.email/htmlBody, sms reads data.phone",
    )
    image_url: str | None = Field(default=None, max_length=2048)
    action_url: str | None = Field(default=None, max_length=2048)
    expires_at: datetime | None = Field(
        default=None,
        description="Do not deliver after this instant",
    )


class SendNotificationRequest(NotificationContent):
    """Payload for sending one notification."""

    user_id: str = Field(..., min_length=1, max_length=255)
    scheduled_at: datetime | None = Field(
        default=None,
        description="Dispatch at this instant instead of immediately",
    )


class BulkSendRequest(NotificationContent):
    """Payload for sending the same notification to many users (immediate only)."""

    user_ids: list[str] = Field(..., min_length=1, max_length=10_000)


class NotificationResponse(BaseModel):
    """Public projection of a notification record."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: str
    workspace_id: str | None = None
    type: NotificationType
    priority: NotificationPriority
    category: str | None = None
    title: str
    body: str
    data: dict[str, Any] | None = None
    image_url: str | None = None
    action_url: str | None = None
    status: NotificationStatus
    scheduled_at: datetime | None = None
    expires_at: datetime | None = None
    sent_at: datetime | None = None
    delivered_at: datetime | None = None
    read_at: datetime | None = None
    error_message: str | None = None
    retry_count: int = 0
    created_at: datetime


class SendNotificationResponse(BaseModel):
    """Result of a send call; ``notification`` is None when silently dropped."""

    sent: bool
    notification: NotificationResponse | None = None


class BulkSendResponse(BaseModel):
    """Number of records queued by a bulk send."""

    queued: int


class NotificationListResponse(BaseModel):
    """One page of a user's in-app notifications."""

    items: list[NotificationResponse]
    total: int
    page: int
    limit: int
    pages: int


class UnreadCountResponse(BaseModel):
    unread: int


class MarkAsReadRequest(BaseModel):
    """Ids to mark as read for the path user."""

    notification_ids: list[UUID] = Field(default_factory=list, max_length=1000)


class MarkAllAsReadRequest(BaseModel):
    workspace_id: str | None = None


class MarkReadResponse(BaseModel):
    updated: int


class NotificationStats(BaseModel):
    """Record counts by outcome, optionally scoped to one workspace."""

    total: int = 0
    sent: int = 0
    delivered: int = 0
    failed: int = 0
    read: int = 0
    pending: int = 0


class RetryResponse(BaseModel):
    retried: bool
    notification_id: UUID
