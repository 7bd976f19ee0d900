"""Test utilities: fakes for the dispatch collaborators and small helpers.

Usage:
    from tests.utils import FakeClock, RecordingQueue, make_request, reload

    queue = RecordingQueue()
    created = await service.send(make_request(type="in_app"))
    assert queue.ids == [created.id]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from dispatch_service.features.notifications.models import Notification
from dispatch_service.features.notifications.providers import (
    MulticastResult,
    ProviderResult,
    TokenError,
)
from dispatch_service.features.notifications.schemas import SendNotificationRequest

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from dispatch_service.features.notifications.queue import SubmissionPolicy

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


# ============================================================================
# Fakes
# ============================================================================


@dataclass
class RecordingQueue:
    """Dispatch queue that records submissions instead of kicking tasks."""

    submitted: list[tuple[UUID, SubmissionPolicy]] = field(default_factory=list)

    async def enqueue(self, notification_id: UUID, policy: SubmissionPolicy) -> None:
        self.submitted.append((notification_id, policy))

    @property
    def ids(self) -> list[UUID]:
        return [notification_id for notification_id, _ in self.submitted]


@dataclass
class FakeProvider:
    """Single-destination provider returning a canned result."""

    name: str
    result: ProviderResult | None = None
    is_initialized: bool = True
    calls: list[tuple[str, Any]] = field(default_factory=list)

    async def send_one(self, destination: str, payload: Any) -> ProviderResult:
        self.calls.append((destination, payload))
        return self.result or ProviderResult.ok(self.name, f"{self.name}-{len(self.calls)}")


@dataclass
class FakePushProvider:
    """Push provider failing the tokens listed in ``token_errors``."""

    token_errors: dict[str, str] = field(default_factory=dict)
    is_initialized: bool = True
    calls: list[tuple[list[str], Any]] = field(default_factory=list)

    async def send_one(self, destination: str, payload: Any) -> ProviderResult:
        result = await self.send_many([destination], payload)
        if result.success:
            return ProviderResult.ok("fcm", "projects/test/messages/1")
        return ProviderResult.failed("fcm", result.first_error or "failed")

    async def send_many(self, destinations: list[str], payload: Any) -> MulticastResult:
        self.calls.append((list(destinations), payload))
        errors = [
            TokenError(token=token, error=self.token_errors[token])
            for token in destinations
            if token in self.token_errors
        ]
        return MulticastResult(
            success_count=len(destinations) - len(errors),
            failure_count=len(errors),
            errors=errors,
            failed_tokens=[e.token for e in errors],
            message_ids=[
                f"projects/test/messages/{token}" for token in destinations if token not in self.token_errors
            ],
        )


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


# ============================================================================
# Helpers
# ============================================================================


def make_request(**overrides: Any) -> SendNotificationRequest:
    """Build a send request with sensible defaults (an in-app message to ``user-1``)."""
    fields: dict[str, Any] = {
        "user_id": "user-1",
        "type": "in_app",
        "title": "Build finished",
        "body": "Your build #42 passed",
    }
    fields.update(overrides)
    return SendNotificationRequest(**fields)


async def reload(session: AsyncSession, notification_id: UUID) -> Notification:
    """Read the current row state, bypassing values cached in the identity map."""
    notification = await session.get(Notification, notification_id, populate_existing=True)
    assert notification is not None
    return notification
