"""API router for the notifications feature.

Dispatch Endpoints:
- POST /notifications/ - Send one notification (silently dropped when rate limited)
- POST /notifications/bulk - Send the same notification to many users

Inbox Endpoints:
- GET /notifications/users/{user_id} - Page through a user's in-app notifications
- GET /notifications/users/{user_id}/unread-count - Unread in-app count
- POST /notifications/users/{user_id}/read - Mark listed notifications as read
- POST /notifications/users/{user_id}/read-all - Mark everything as read

Operations Endpoints:
- GET /notifications/stats - Counts by status
- GET /notifications/failed - Most recent failures
- GET /notifications/{notification_id} - Fetch one notification
- POST /notifications/{notification_id}/retry - Requeue a failed notification
"""

from __future__ import annotations

import logging
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Query, status

from dispatch_service.core.exceptions import ConflictException, NotFoundException, ValidationException
from dispatch_service.features.notifications.dependencies import NotificationServiceDep
from dispatch_service.features.notifications.schemas import (
    BulkSendRequest,
    BulkSendResponse,
    MarkAllAsReadRequest,
    MarkAsReadRequest,
    MarkReadResponse,
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
    RetryResponse,
    SendNotificationRequest,
    SendNotificationResponse,
    UnreadCountResponse,
)
from dispatch_service.infra.logging import get_lazy_logger

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"],
)

WorkspaceQuery = Annotated[str | None, Query(description="Restrict to one workspace")]


# ============================================================================
# Dispatch
# ============================================================================


@router.post(
    "/",
    response_model=SendNotificationResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send a notification",
    description="""
Store a notification and queue it for delivery, or hold it until
`scheduled_at` when given.

A request over the per-user rate limit, or for a channel the user cannot
receive, is dropped without error: the response is `{"sent": false}`.
""",
)
async def send_notification(
    payload: SendNotificationRequest,
    service: NotificationServiceDep,
) -> SendNotificationResponse:
    notification = await service.send(payload)
    return SendNotificationResponse(sent=notification is not None, notification=notification)


@router.post(
    "/bulk",
    response_model=BulkSendResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Send a notification to many users",
)
async def send_bulk_notifications(
    payload: BulkSendRequest,
    service: NotificationServiceDep,
) -> BulkSendResponse:
    """Queue the same content for every listed user; scheduling is not supported."""
    queued = await service.send_bulk(payload)
    lazy_logger.debug(lambda: f"router.send_bulk: requested={len(payload.user_ids)}, queued={queued}")
    return BulkSendResponse(queued=queued)


# ============================================================================
# Inbox
# ============================================================================


@router.get(
    "/users/{user_id}",
    response_model=NotificationListResponse,
    summary="List a user's in-app notifications",
)
async def list_user_notifications(
    user_id: str,
    service: NotificationServiceDep,
    workspace_id: WorkspaceQuery = None,
    page: Annotated[int, Query(ge=0, description="Zero-based page number")] = 0,
    limit: Annotated[int | None, Query(ge=1, le=100, description="Page size")] = None,
) -> NotificationListResponse:
    return await service.get_user_notifications(
        user_id,
        workspace_id=workspace_id,
        page=page,
        limit=limit,
    )


@router.get(
    "/users/{user_id}/unread-count",
    response_model=UnreadCountResponse,
    summary="Count a user's unread in-app notifications",
)
async def unread_count(
    user_id: str,
    service: NotificationServiceDep,
    workspace_id: WorkspaceQuery = None,
) -> UnreadCountResponse:
    return UnreadCountResponse(unread=await service.get_unread_count(user_id, workspace_id=workspace_id))


@router.post(
    "/users/{user_id}/read",
    response_model=MarkReadResponse,
    summary="Mark notifications as read",
)
async def mark_as_read(
    user_id: str,
    payload: MarkAsReadRequest,
    service: NotificationServiceDep,
) -> MarkReadResponse:
    """Mark the listed notifications of the user as read.

    Ids belonging to other users, and notifications already read, are ignored.
    """
    if not payload.notification_ids:
        raise ValidationException(
            detail="notification_ids must not be empty",
            type="empty-notification-ids",
        )
    updated = await service.mark_as_read(user_id, payload.notification_ids)
    return MarkReadResponse(updated=updated)


@router.post(
    "/users/{user_id}/read-all",
    response_model=MarkReadResponse,
    summary="Mark all notifications as read",
)
async def mark_all_as_read(
    user_id: str,
    service: NotificationServiceDep,
    payload: MarkAllAsReadRequest | None = None,
) -> MarkReadResponse:
    workspace_id = payload.workspace_id if payload else None
    updated = await service.mark_all_as_read(user_id, workspace_id=workspace_id)
    return MarkReadResponse(updated=updated)


# ============================================================================
# Operations
# ============================================================================


@router.get(
    "/stats",
    response_model=NotificationStats,
    summary="Notification counts by status",
)
async def get_stats(
    service: NotificationServiceDep,
    workspace_id: WorkspaceQuery = None,
) -> NotificationStats:
    return await service.get_stats(workspace_id=workspace_id)


@router.get(
    "/failed",
    response_model=list[NotificationResponse],
    summary="List failed notifications",
)
async def list_failed(
    service: NotificationServiceDep,
    limit: Annotated[int | None, Query(ge=1, le=1000, description="Maximum results")] = None,
) -> list[NotificationResponse]:
    return await service.get_failed_notifications(limit=limit)


@router.get(
    "/{notification_id}",
    response_model=NotificationResponse,
    summary="Get a notification",
    responses={404: {"description": "Notification not found"}},
)
async def get_notification(
    notification_id: UUID,
    service: NotificationServiceDep,
) -> NotificationResponse:
    notification = await service.get_notification(notification_id)
    if notification is None:
        raise NotFoundException(
            detail=f"Notification {notification_id} not found",
            type="notification-not-found",
            extra={"notification_id": str(notification_id)},
        )
    return notification


@router.post(
    "/{notification_id}/retry",
    response_model=RetryResponse,
    summary="Retry a failed notification",
    responses={409: {"description": "Notification is missing or not in a failed state"}},
)
async def retry_notification(
    notification_id: UUID,
    service: NotificationServiceDep,
) -> RetryResponse:
    """Requeue a failed notification for one more delivery attempt."""
    if not await service.retry_notification(notification_id):
        raise ConflictException(
            detail="Only existing failed notifications can be retried",
            type="notification-not-retryable",
            extra={"notification_id": str(notification_id)},
        )

    logger.info(
        "Notification retry requested",
        extra={"notification_id": str(notification_id), "operation": "router.retry_notification"},
    )
    return RetryResponse(retried=True, notification_id=notification_id)
