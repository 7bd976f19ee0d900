"""Repository for notification records.

Status transitions that race with other workers (sweep promotion, job
resubmission, delivery claims, manual retry) are conditional UPDATE
statements: the WHERE clause carries the expected current status, and the
affected row count tells the caller whether it won.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import and_, func, or_, select, update

from dispatch_service.core.database import BaseRepository, SearchResult
from dispatch_service.features.notifications.enums import (
    NotificationStatus,
    NotificationType,
)
from dispatch_service.features.notifications.models import Notification

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession


_CLAIMABLE_STATUSES = (
    NotificationStatus.QUEUED,
    NotificationStatus.FAILED,
    NotificationStatus.PROCESSING,
)


def _claimable(stale_before: datetime) -> Any:
    return or_(
        Notification.status == NotificationStatus.QUEUED,
        and_(
            Notification.status == NotificationStatus.FAILED,
            Notification.awaiting_redelivery.is_(True),
        ),
        and_(
            Notification.status == NotificationStatus.PROCESSING,
            Notification.claimed_at < stale_before,
        ),
    )


def _enqueued_before(stale_before: datetime) -> Any:
    return or_(Notification.enqueued_at.is_(None), Notification.enqueued_at < stale_before)


class NotificationRepository(BaseRepository[Notification]):
    """Data access for the ``notifications`` table."""

    def __init__(self) -> None:
        super().__init__(Notification)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        workspace_id: str | None = None,
        notification_type: NotificationType | None = NotificationType.IN_APP,
        limit: int = 20,
        offset: int = 0,
    ) -> SearchResult[Notification]:
        """Page through a user's notifications, newest first.

        Args:
            session: Database session
            user_id: Owner
            workspace_id: Optional workspace filter
            notification_type: Channel filter (in-app inbox by default)
            limit: Page size
            offset: Rows to skip

        Returns:
            SearchResult with the page and the total count
        """
        stmt = select(Notification).where(Notification.user_id == user_id)
        if workspace_id is not None:
            stmt = stmt.where(Notification.workspace_id == workspace_id)
        if notification_type is not None:
            stmt = stmt.where(Notification.type == notification_type)
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())

        return await self.search(session, stmt, limit=limit, offset=offset)

    async def count_unread(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        workspace_id: str | None = None,
    ) -> int:
        """Count the user's in-app notifications that are not READ."""
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.type == NotificationType.IN_APP,
                Notification.status != NotificationStatus.READ,
            )
        )
        if workspace_id is not None:
            stmt = stmt.where(Notification.workspace_id == workspace_id)
        count = (await session.execute(stmt)).scalar_one()

        self._lazy.debug(lambda: f"db.count_unread({user_id=}, {workspace_id=}) -> {count}")
        return count

    async def count_by_status(
        self,
        session: AsyncSession,
        *,
        workspace_id: str | None = None,
    ) -> dict[str, int]:
        """Count records grouped by status, optionally within one workspace."""
        stmt = select(Notification.status, func.count()).group_by(Notification.status)
        if workspace_id is not None:
            stmt = stmt.where(Notification.workspace_id == workspace_id)
        result = await session.execute(stmt)
        counts = {status: count for status, count in result.all()}

        self._lazy.debug(lambda: f"db.count_by_status({workspace_id=}) -> {counts}")
        return counts

    async def find_due_scheduled(
        self,
        session: AsyncSession,
        now: datetime,
        *,
        limit: int = 100,
    ) -> Sequence[Notification]:
        """Find PENDING records whose scheduled time has arrived.

        Args:
            session: Database session
            now: Reference instant
            limit: Maximum records to return

        Returns:
            Due records, oldest schedule first
        """
        stmt = (
            select(Notification)
            .where(
                Notification.status == NotificationStatus.PENDING,
                Notification.scheduled_at.is_not(None),
                Notification.scheduled_at <= now,
            )
            .order_by(Notification.scheduled_at.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.find_due_scheduled(limit={limit}) -> {len(items)} due")
        return items

    async def find_stranded_queued(
        self,
        session: AsyncSession,
        *,
        stale_before: datetime,
        limit: int = 100,
    ) -> Sequence[Notification]:
        """Find QUEUED records whose dispatch job was submitted before ``stale_before``.

        These are records whose job never reached a worker, for example
        because the broker was down when it was kicked.
        """
        stmt = (
            select(Notification)
            .where(Notification.status == NotificationStatus.QUEUED, _enqueued_before(stale_before))
            .order_by(Notification.enqueued_at.asc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        items = result.scalars().all()

        self._lazy.debug(lambda: f"db.find_stranded_queued(limit={limit}) -> {len(items)} stranded")
        return items

    async def list_failed(self, session: AsyncSession, *, limit: int = 50) -> Sequence[Notification]:
        """Most recent FAILED records."""
        stmt = (
            select(Notification)
            .where(Notification.status == NotificationStatus.FAILED)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    # ------------------------------------------------------------------
    # Conditional transitions
    # ------------------------------------------------------------------

    async def transition(
        self,
        session: AsyncSession,
        notification_id: UUID,
        *,
        expected: Iterable[NotificationStatus],
        values: dict[str, Any],
        extra_criteria: Any = None,
    ) -> bool:
        """Apply ``values`` only if the record is still in one of ``expected``.

        Args:
            session: Database session
            notification_id: Record to update
            expected: Statuses the record must currently hold
            values: Column values to set
            extra_criteria: Optional additional WHERE clause

        Returns:
            True if this call performed the transition
        """
        criteria = [
            Notification.id == notification_id,
            Notification.status.in_([str(s) for s in expected]),
        ]
        if extra_criteria is not None:
            criteria.append(extra_criteria)

        stmt = (
            update(Notification)
            .where(*criteria)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        won = result.rowcount == 1

        self._lazy.debug(
            lambda: f"db.transition({notification_id}) -> {values.get('status')} {'applied' if won else 'skipped'}"
        )
        return won

    async def claim_for_delivery(
        self,
        session: AsyncSession,
        notification_id: UUID,
        *,
        now: datetime,
        stale_before: datetime,
    ) -> bool:
        """Take the delivery claim on a record.

        Claimable records are QUEUED ones, FAILED ones handed back to the
        queue after an unexpected error, and PROCESSING ones whose claim went
        stale (the worker holding it died).
        """
        return await self.transition(
            session,
            notification_id,
            expected=_CLAIMABLE_STATUSES,
            values={
                "status": NotificationStatus.PROCESSING,
                "claimed_at": now,
                "awaiting_redelivery": False,
            },
            extra_criteria=_claimable(stale_before),
        )

    async def expire_undelivered(
        self,
        session: AsyncSession,
        notification_id: UUID,
        *,
        stale_before: datetime,
        error_message: str,
    ) -> bool:
        """Fail a record that passed its deadline before any worker sent it."""
        return await self.transition(
            session,
            notification_id,
            expected=_CLAIMABLE_STATUSES,
            values={
                "status": NotificationStatus.FAILED,
                "error_message": error_message,
                "awaiting_redelivery": False,
            },
            extra_criteria=_claimable(stale_before),
        )

    async def complete_claim(
        self,
        session: AsyncSession,
        notification_id: UUID,
        *,
        claimed_at: datetime,
        values: dict[str, Any],
    ) -> bool:
        """Write a delivery result, provided our claim was not taken over."""
        return await self.transition(
            session,
            notification_id,
            expected=(NotificationStatus.PROCESSING,),
            values=values,
            extra_criteria=Notification.claimed_at == claimed_at,
        )

    async def mark_requeued(
        self,
        session: AsyncSession,
        notification_id: UUID,
        *,
        now: datetime,
        stale_before: datetime,
    ) -> bool:
        """Restamp a stranded QUEUED record so only one sweep resubmits its job."""
        return await self.transition(
            session,
            notification_id,
            expected=(NotificationStatus.QUEUED,),
            values={"enqueued_at": now},
            extra_criteria=_enqueued_before(stale_before),
        )

    async def mark_read(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        now: datetime,
        notification_ids: Sequence[UUID] | None = None,
        workspace_id: str | None = None,
    ) -> int:
        """Move the user's non-READ records to READ.

        Args:
            session: Database session
            user_id: Owner; records of other users are never touched
            now: Value for read_at
            notification_ids: Restrict to these ids (all records when None)
            workspace_id: Restrict to one workspace

        Returns:
            Number of records updated
        """
        criteria = [
            Notification.user_id == user_id,
            Notification.status != NotificationStatus.READ,
        ]
        if notification_ids is not None:
            criteria.append(Notification.id.in_(list(notification_ids)))
        if workspace_id is not None:
            criteria.append(Notification.workspace_id == workspace_id)

        stmt = (
            update(Notification)
            .where(*criteria)
            .values(status=NotificationStatus.READ, read_at=now)
            .execution_options(synchronize_session="fetch")
        )
        result = await session.execute(stmt)
        updated = result.rowcount

        self._lazy.debug(lambda: f"db.mark_read({user_id=}, {workspace_id=}) -> {updated} updated")
        return updated


_notification_repository: NotificationRepository | None = None


def get_notification_repository() -> NotificationRepository:
    """Get NotificationRepository instance.

    Usage in FastAPI routes:
        from dispatch_service.features.notifications.repository import (
            NotificationRepository,
            get_notification_repository,
        )

        @router.get("/notifications/{id}")
        async def get_notification(
            id: UUID,
            session: AsyncSession = Depends(get_db_session),
            repo: NotificationRepository = Depends(get_notification_repository),
        ):
            return await repo.get(session, id)
    """
    global _notification_repository
    if _notification_repository is None:
        _notification_repository = NotificationRepository()
    return _notification_repository
