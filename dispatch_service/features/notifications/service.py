"""Notification dispatch service.

Owns admission (rate limit and preference gate), persistence, the scheduled
sweep, claim-then-deliver processing and the inbox queries. The service
commits its own transactions: a record is committed before its dispatch job
is enqueued so a worker can always see it, and a delivery claim is committed
before the channel is called. A job the broker refused is resubmitted by
the sweep.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
import time
from typing import TYPE_CHECKING

from dispatch_service.core.services.base import BaseService
from dispatch_service.core.settings import get_notification_settings
from dispatch_service.features.notifications.channels import (
    ChannelCapability,
    DeliveryOutcome,
    get_channel,
    get_channel_collaborators,
)
from dispatch_service.features.notifications.enums import (
    NotificationStatus,
    NotificationType,
)
from dispatch_service.features.notifications.metrics import (
    notification_created_total,
    notification_delivered_total,
    notification_delivery_duration_seconds,
    notification_dropped_total,
    notification_enqueue_failures_total,
    notification_provider_messages_total,
    notification_swept_total,
)
from dispatch_service.features.notifications.models import Notification
from dispatch_service.features.notifications.preferences import SettingsPreferenceGate
from dispatch_service.features.notifications.queue import SubmissionPolicy, TaskiqDispatchQueue
from dispatch_service.features.notifications.repository import get_notification_repository
from dispatch_service.features.notifications.schemas import (
    NotificationListResponse,
    NotificationResponse,
    NotificationStats,
)
from dispatch_service.infra.ratelimit import UserRateLimiter

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from dispatch_service.core.settings.notifications import NotificationSettings
    from dispatch_service.features.notifications.channels import Channel, ChannelCollaborators
    from dispatch_service.features.notifications.preferences import PreferenceGate
    from dispatch_service.features.notifications.queue import DispatchQueue
    from dispatch_service.features.notifications.repository import NotificationRepository
    from dispatch_service.features.notifications.schemas import (
        BulkSendRequest,
        NotificationContent,
        SendNotificationRequest,
    )

EXPIRED_BEFORE_DELIVERY = "Notification expired before delivery"
EXPIRED_AT_DISPATCH = "Notification expired"


@dataclass(frozen=True, slots=True)
class SweepResult:
    """What one sweep tick did.

    Attributes:
        queued: Due records promoted to QUEUED and enqueued
        expired: Due records failed because their deadline had passed
        skipped: Due records another sweep claimed first
        requeued: Stranded QUEUED records whose job was submitted again
    """

    queued: int = 0
    expired: int = 0
    skipped: int = 0
    requeued: int = 0


def _utc(value: datetime | None) -> datetime | None:
    """Normalize to aware UTC; naive input is taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _utc_now() -> datetime:
    return datetime.now(UTC)


_rate_limiter: UserRateLimiter | None = None


def get_rate_limiter() -> UserRateLimiter:
    """Process-wide rate limiter configured from NotificationSettings."""
    global _rate_limiter
    if _rate_limiter is None:
        settings = get_notification_settings()
        _rate_limiter = UserRateLimiter(
            max_requests=settings.rate_limit_max,
            window_seconds=settings.rate_limit_window_seconds,
            eviction_interval=settings.rate_limit_eviction_interval_seconds,
            max_tracked_users=settings.rate_limit_max_tracked_users,
        )
    return _rate_limiter


class NotificationService(BaseService):
    """Dispatch core for notifications.

    Example:
        async with get_async_session() as session:
            service = NotificationService(session)
            created = await service.send(request)
            if created is None:
                ...  # dropped by rate limit or preferences
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        repository: NotificationRepository | None = None,
        rate_limiter: UserRateLimiter | None = None,
        preferences: PreferenceGate | None = None,
        queue: DispatchQueue | None = None,
        collaborators: ChannelCollaborators | None = None,
        channels: dict[NotificationType, Channel] | None = None,
        settings: NotificationSettings | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize service.

        Args:
            session: Database session; the service commits on it
            repository: Notification repository (shared singleton by default)
            rate_limiter: Per-user limiter (process-wide instance by default)
            preferences: Preference gate (settings-driven by default)
            queue: Dispatch queue (taskiq by default)
            collaborators: Device directory and providers for channels
            channels: Override of the type-to-channel registry
            settings: Notification settings
            clock: Source of the current UTC time
        """
        super().__init__()
        self._session = session
        self._settings = settings or get_notification_settings()
        self._repository = repository or get_notification_repository()
        self._rate_limiter = rate_limiter or get_rate_limiter()
        self._preferences = preferences or SettingsPreferenceGate(self._settings.disabled_types)
        self._queue = queue or TaskiqDispatchQueue()
        self._collaborators = collaborators
        self._channels = channels
        self._clock = clock

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    async def _admit(
        self,
        user_id: str,
        workspace_id: str | None,
        notification_type: NotificationType,
    ) -> bool:
        if not self._rate_limiter.admit(user_id):
            notification_dropped_total.labels(reason="rate_limited").inc()
            self._lazy.debug(lambda: f"send: dropped {user_id=} (rate limited)")
            return False

        if not await self._preferences.can_send(user_id, workspace_id, notification_type):
            notification_dropped_total.labels(reason="preference_blocked").inc()
            self.logger.info(
                "Notification blocked by preferences",
                extra={
                    "user_id": user_id,
                    "workspace_id": workspace_id,
                    "notification_type": str(notification_type),
                    "operation": "service.send",
                },
            )
            return False
        return True

    def _build(
        self,
        user_id: str,
        content: NotificationContent,
        *,
        scheduled_at: datetime | None = None,
    ) -> Notification:
        return Notification(
            user_id=user_id,
            workspace_id=content.workspace_id,
            type=content.type,
            priority=content.priority,
            category=content.category,
            title=content.title,
            body=content.body,
            data=dict(content.data) if content.data is not None else None,
            image_url=content.image_url,
            action_url=content.action_url,
            scheduled_at=_utc(scheduled_at),
            expires_at=_utc(content.expires_at),
            status=NotificationStatus.PENDING if scheduled_at else NotificationStatus.QUEUED,
            enqueued_at=None if scheduled_at else self._clock(),
            retry_count=0,
            awaiting_redelivery=False,
        )

    def _policy(self, notification: Notification) -> SubmissionPolicy:
        return SubmissionPolicy.for_priority(notification.priority, self._settings)

    async def _enqueue(self, notification: Notification) -> bool:
        """Submit the dispatch job for a committed QUEUED record.

        A failed submission leaves the record QUEUED with its ``enqueued_at``
        stamp; the sweep resubmits it once the stamp is older than the claim
        timeout.
        """
        try:
            await self._queue.enqueue(notification.id, self._policy(notification))
        except Exception:
            notification_enqueue_failures_total.inc()
            self.logger.exception(
                "Dispatch job could not be enqueued; the sweep will resubmit it",
                extra={"notification_id": str(notification.id), "operation": "service.enqueue"},
            )
            return False
        return True

    async def send(self, request: SendNotificationRequest) -> NotificationResponse | None:
        """Admit, persist and (unless scheduled) enqueue one notification.

        Args:
            request: Recipient, content and optional schedule

        Returns:
            The stored notification, or None when silently dropped by the
            rate limiter or the preference gate
        """
        if not await self._admit(request.user_id, request.workspace_id, request.type):
            return None

        notification = self._build(request.user_id, request, scheduled_at=request.scheduled_at)
        await self._repository.create(self._session, notification)
        await self._session.commit()
        notification_created_total.labels(
            notification_type=notification.type,
            priority=notification.priority,
        ).inc()

        if notification.status == NotificationStatus.QUEUED:
            await self._enqueue(notification)

        self.logger.info(
            "Notification created",
            extra={
                "notification_id": str(notification.id),
                "user_id": notification.user_id,
                "notification_type": notification.type,
                "status": notification.status,
                "operation": "service.send",
            },
        )
        return NotificationResponse.model_validate(notification)

    async def send_bulk(self, request: BulkSendRequest) -> int:
        """Send the same content to many users, immediately.

        Each user goes through the rate limiter and preference gate on their
        own; survivors are stored in one batch and enqueued one job each.

        Returns:
            Number of notifications queued
        """
        survivors: list[Notification] = []
        for user_id in request.user_ids:
            if await self._admit(user_id, request.workspace_id, request.type):
                survivors.append(self._build(user_id, request))

        if not survivors:
            return 0

        await self._repository.create_many(self._session, survivors)
        await self._session.commit()
        notification_created_total.labels(
            notification_type=request.type,
            priority=request.priority,
        ).inc(len(survivors))

        for notification in survivors:
            await self._enqueue(notification)

        self.logger.info(
            "Bulk notifications queued",
            extra={
                "requested": len(request.user_ids),
                "queued": len(survivors),
                "notification_type": str(request.type),
                "operation": "service.send_bulk",
            },
        )
        return len(survivors)

    # ------------------------------------------------------------------
    # Scheduled sweep
    # ------------------------------------------------------------------

    async def sweep(self) -> SweepResult:
        """Promote due scheduled notifications and resubmit stranded jobs.

        Each due PENDING record is claimed with a conditional update, so two
        overlapping sweeps never enqueue the same record twice. Records past
        their deadline fail instead of being queued.

        QUEUED records whose job was submitted longer than the claim timeout
        ago never reached a worker and are enqueued again. A duplicate job is
        harmless: delivery still requires the claim.
        """
        now = self._clock()
        stale_before = now - timedelta(seconds=self._settings.claim_timeout_seconds)
        due = await self._repository.find_due_scheduled(
            self._session, now, limit=self._settings.sweep_batch_size
        )

        to_enqueue: list[Notification] = []
        expired = skipped = 0
        for notification in due:
            if notification.is_expired(now):
                won = await self._repository.transition(
                    self._session,
                    notification.id,
                    expected=(NotificationStatus.PENDING,),
                    values={
                        "status": NotificationStatus.FAILED,
                        "error_message": EXPIRED_BEFORE_DELIVERY,
                    },
                )
                if won:
                    expired += 1
            else:
                won = await self._repository.transition(
                    self._session,
                    notification.id,
                    expected=(NotificationStatus.PENDING,),
                    values={"status": NotificationStatus.QUEUED, "enqueued_at": now},
                )
                if won:
                    to_enqueue.append(notification)
            if not won:
                skipped += 1

        stranded = await self._repository.find_stranded_queued(
            self._session, stale_before=stale_before, limit=self._settings.sweep_batch_size
        )
        to_resubmit = [
            notification
            for notification in stranded
            if await self._repository.mark_requeued(
                self._session, notification.id, now=now, stale_before=stale_before
            )
        ]

        await self._session.commit()

        for notification in [*to_enqueue, *to_resubmit]:
            await self._enqueue(notification)

        result = SweepResult(
            queued=len(to_enqueue),
            expired=expired,
            skipped=skipped,
            requeued=len(to_resubmit),
        )
        for outcome in ("queued", "expired", "skipped", "requeued"):
            if count := getattr(result, outcome):
                notification_swept_total.labels(outcome=outcome).inc(count)

        if due or to_resubmit:
            self.logger.info(
                "Scheduled notifications swept",
                extra={
                    "due": len(due),
                    "queued": result.queued,
                    "expired": result.expired,
                    "skipped": result.skipped,
                    "requeued": result.requeued,
                    "operation": "service.sweep",
                },
            )
        return result

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def _resolve_channel(self, notification_type: str) -> Channel:
        if self._channels is not None:
            return self._channels[NotificationType(notification_type)]
        return get_channel(notification_type)

    async def process(self, notification_id: UUID) -> DeliveryOutcome | None:
        """Deliver one queued notification.

        The record is claimed (moved to PROCESSING) and the claim committed
        before the channel is called. If the claim fails, another worker owns
        the record or it is already terminal, and nothing is sent.

        Args:
            notification_id: Record to deliver

        Returns:
            The delivery outcome, or None when nothing was attempted

        Raises:
            Exception: Unexpected channel errors are re-raised after the
                record is marked FAILED and handed back for redelivery
        """
        now = self._clock()
        stale_before = now - timedelta(seconds=self._settings.claim_timeout_seconds)

        notification = await self._repository.get(self._session, notification_id)
        if notification is None:
            self.logger.warning(
                "Notification not found",
                extra={"notification_id": str(notification_id), "operation": "service.process"},
            )
            return None

        if notification.is_expired(now):
            expired = await self._repository.expire_undelivered(
                self._session,
                notification_id,
                stale_before=stale_before,
                error_message=EXPIRED_AT_DISPATCH,
            )
            await self._session.commit()
            if not expired:
                return None
            notification_delivered_total.labels(
                channel=notification.type, status=NotificationStatus.FAILED
            ).inc()
            self.logger.info(
                "Notification expired before dispatch",
                extra={"notification_id": str(notification_id), "operation": "service.process"},
            )
            return DeliveryOutcome.failed(EXPIRED_AT_DISPATCH)

        claimed = await self._repository.claim_for_delivery(
            self._session, notification_id, now=now, stale_before=stale_before
        )
        if not claimed:
            self.logger.info(
                "Notification not claimable, skipping",
                extra={
                    "notification_id": str(notification_id),
                    "status": notification.status,
                    "operation": "service.process",
                },
            )
            await self._session.rollback()
            return None
        await self._session.commit()

        start_time = time.perf_counter()
        try:
            channel = self._resolve_channel(notification.type)
            collaborators = self._collaborators or get_channel_collaborators()
            outcome = await channel.deliver(notification, collaborators)
        except Exception as e:
            notification_delivery_duration_seconds.labels(channel=notification.type).observe(
                time.perf_counter() - start_time
            )
            notification_delivered_total.labels(channel=notification.type, status="error").inc()
            self.logger.exception(
                "Notification delivery raised",
                extra={"notification_id": str(notification_id), "operation": "service.process"},
            )
            await self._repository.complete_claim(
                self._session,
                notification_id,
                claimed_at=now,
                values={
                    "status": NotificationStatus.FAILED,
                    "error_message": str(e) or type(e).__name__,
                    "retry_count": notification.retry_count + 1,
                    "awaiting_redelivery": True,
                },
            )
            await self._session.commit()
            raise

        notification_delivery_duration_seconds.labels(channel=notification.type).observe(
            time.perf_counter() - start_time
        )

        values: dict[str, object] = {
            "status": outcome.status,
            "error_message": outcome.error_message,
            "awaiting_redelivery": False,
        }
        if notification.sent_at is None:
            values["sent_at"] = now
        if outcome.status == NotificationStatus.DELIVERED and notification.delivered_at is None:
            values["delivered_at"] = now

        written = await self._repository.complete_claim(
            self._session, notification_id, claimed_at=now, values=values
        )
        await self._session.commit()
        if not written:
            self.logger.warning(
                "Delivery claim was taken over before the result was written",
                extra={"notification_id": str(notification_id), "operation": "service.process"},
            )

        notification_delivered_total.labels(channel=notification.type, status=outcome.status).inc()
        if outcome.accepted_messages and ChannelCapability.EXTERNAL in channel.capabilities:
            notification_provider_messages_total.labels(provider=outcome.provider or "unknown").inc(
                outcome.accepted_messages
            )

        log = self.logger.info if outcome.succeeded else self.logger.warning
        log(
            "Notification delivery finished",
            extra={
                "notification_id": str(notification_id),
                "notification_type": notification.type,
                "status": outcome.status,
                "error_message": outcome.error_message,
                "provider_message_id": outcome.provider_message_id,
                "operation": "service.process",
            },
        )
        return outcome

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_notification(self, notification_id: UUID) -> NotificationResponse | None:
        notification = await self._repository.get(self._session, notification_id)
        return NotificationResponse.model_validate(notification) if notification else None

    async def get_user_notifications(
        self,
        user_id: str,
        *,
        workspace_id: str | None = None,
        page: int = 0,
        limit: int | None = None,
    ) -> NotificationListResponse:
        """One page of the user's in-app inbox, newest first.

        Args:
            user_id: Inbox owner
            workspace_id: Optional workspace filter
            page: Zero-based page number
            limit: Page size (settings default when None)
        """
        limit = limit or self._settings.default_page_size
        page = max(page, 0)
        result = await self._repository.list_for_user(
            self._session,
            user_id,
            workspace_id=workspace_id,
            notification_type=NotificationType.IN_APP,
            limit=limit,
            offset=page * limit,
        )
        return NotificationListResponse(
            items=[NotificationResponse.model_validate(n) for n in result.items],
            total=result.total,
            page=page,
            limit=limit,
            pages=result.pages,
        )

    async def get_unread_count(self, user_id: str, *, workspace_id: str | None = None) -> int:
        return await self._repository.count_unread(self._session, user_id, workspace_id=workspace_id)

    async def mark_as_read(self, user_id: str, notification_ids: Sequence[UUID]) -> int:
        """Mark the user's listed notifications as read.

        Records already READ and records of other users are left alone, so
        repeating the call is a no-op.

        Returns:
            Number of records updated
        """
        if not notification_ids:
            return 0
        updated = await self._repository.mark_read(
            self._session,
            user_id,
            now=self._clock(),
            notification_ids=notification_ids,
        )
        await self._session.commit()
        return updated

    async def mark_all_as_read(self, user_id: str, *, workspace_id: str | None = None) -> int:
        """Mark every unread notification of the user as read, optionally in one workspace."""
        updated = await self._repository.mark_read(
            self._session,
            user_id,
            now=self._clock(),
            workspace_id=workspace_id,
        )
        await self._session.commit()

        self._lazy.debug(lambda: f"mark_all_as_read({user_id=}, {workspace_id=}) -> {updated}")
        return updated

    async def get_stats(self, *, workspace_id: str | None = None) -> NotificationStats:
        counts = await self._repository.count_by_status(self._session, workspace_id=workspace_id)
        return NotificationStats(
            total=sum(counts.values()),
            sent=counts.get(NotificationStatus.SENT, 0),
            delivered=counts.get(NotificationStatus.DELIVERED, 0),
            failed=counts.get(NotificationStatus.FAILED, 0),
            read=counts.get(NotificationStatus.READ, 0),
            pending=counts.get(NotificationStatus.PENDING, 0),
        )

    async def get_failed_notifications(self, *, limit: int | None = None) -> list[NotificationResponse]:
        """Most recent FAILED notifications; partial push deliveries are SENT and not listed."""
        items = await self._repository.list_failed(
            self._session, limit=limit or self._settings.failed_list_limit
        )
        return [NotificationResponse.model_validate(n) for n in items]

    async def retry_notification(self, notification_id: UUID) -> bool:
        """Requeue a FAILED notification.

        Clears the error, keeps ``retry_count`` and enqueues exactly one job.

        Returns:
            False if the record is missing or not FAILED (nothing changes)
        """
        notification = await self._repository.get(self._session, notification_id)
        if notification is None or notification.status != NotificationStatus.FAILED:
            return False

        requeued = await self._repository.transition(
            self._session,
            notification_id,
            expected=(NotificationStatus.FAILED,),
            values={
                "status": NotificationStatus.QUEUED,
                "error_message": None,
                "awaiting_redelivery": False,
                "claimed_at": None,
                "enqueued_at": self._clock(),
            },
        )
        if not requeued:
            await self._session.rollback()
            return False
        await self._session.commit()

        await self._enqueue(notification)
        self.logger.info(
            "Notification requeued",
            extra={
                "notification_id": str(notification_id),
                "retry_count": notification.retry_count,
                "operation": "service.retry_notification",
            },
        )
        return True


def get_notification_service(session: AsyncSession) -> NotificationService:
    """Build a NotificationService with the process-wide collaborators."""
    return NotificationService(session)


__all__ = [
    "EXPIRED_AT_DISPATCH",
    "EXPIRED_BEFORE_DELIVERY",
    "NotificationService",
    "SweepResult",
    "get_notification_service",
    "get_rate_limiter",
]
