"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings that keep tests off RabbitMQ, SMTP and the scheduler
    - Database Fixtures: in-memory SQLite engine and session
    - Service Fixtures: a NotificationService wired to the fakes in tests/utils.py
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from typing import TYPE_CHECKING, Any

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RABBIT_ENABLED", "false")
os.environ.setdefault("APP_SCHEDULER_ENABLED", "false")
os.environ.setdefault("APP_BROKER_ENABLED", "false")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("EMAIL_ENABLED", "false")

from dispatch_service.core.settings.notifications import NotificationSettings  # noqa: E402
from dispatch_service.features.notifications.channels import ChannelCollaborators  # noqa: E402
from dispatch_service.features.notifications.devices import (  # noqa: E402
    Device,
    InMemoryDeviceDirectory,
)
from dispatch_service.features.notifications.preferences import AllowAllPreferenceGate  # noqa: E402
from dispatch_service.features.notifications.repository import NotificationRepository  # noqa: E402
from dispatch_service.features.notifications.service import NotificationService  # noqa: E402
from dispatch_service.infra.ratelimit import UserRateLimiter  # noqa: E402
from tests.utils import FakeClock, FakePushProvider, FakeProvider, RecordingQueue  # noqa: E402

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Async engine on a single shared in-memory SQLite connection."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(
    db_engine: AsyncEngine,
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Session with all tables created; tables are dropped afterwards.

    Example:
        async def test_create(db_session):
            db_session.add(Notification(...))
            await db_session.commit()
    """
    from dispatch_service.core.database import Base

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ============================================================================
# Service Fixtures
# ============================================================================


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def devices() -> InMemoryDeviceDirectory:
    """Directory where ``user-push`` owns three devices and nobody else owns any."""
    return InMemoryDeviceDirectory(
        {"user-push": [Device("token-a", "ios"), Device("token-b", "android"), Device("token-c", "web")]}
    )


@pytest.fixture
def push_provider() -> FakePushProvider:
    return FakePushProvider()


@pytest.fixture
def email_provider() -> FakeProvider:
    return FakeProvider("smtp")


@pytest.fixture
def sms_provider() -> FakeProvider:
    return FakeProvider("twilio")


@pytest.fixture
def collaborators(
    devices: InMemoryDeviceDirectory,
    push_provider: FakePushProvider,
    email_provider: FakeProvider,
    sms_provider: FakeProvider,
) -> ChannelCollaborators:
    return ChannelCollaborators(
        devices=devices,
        push=push_provider,
        email=email_provider,
        sms=sms_provider,
    )


@pytest.fixture
def notification_settings() -> NotificationSettings:
    return NotificationSettings()


@pytest.fixture
def make_service(
    db_session: AsyncSession,
    queue: RecordingQueue,
    collaborators: ChannelCollaborators,
    clock: FakeClock,
    notification_settings: NotificationSettings,
) -> Callable[..., NotificationService]:
    """Factory for services on the test session; keyword arguments override collaborators.

    Example:
        service = make_service(rate_limiter=UserRateLimiter(max_requests=2))
    """

    def _make(**overrides: Any) -> NotificationService:
        options: dict[str, Any] = {
            "repository": NotificationRepository(),
            "rate_limiter": UserRateLimiter(),
            "preferences": AllowAllPreferenceGate(),
            "queue": queue,
            "collaborators": collaborators,
            "settings": notification_settings,
            "clock": clock,
        }
        options.update(overrides)
        session = options.pop("session", db_session)
        return NotificationService(session, **options)

    return _make


@pytest.fixture
def service(make_service: Callable[..., NotificationService]) -> NotificationService:
    return make_service()
