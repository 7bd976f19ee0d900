"""Tests for the notification tasks, the broker wiring and the sweep scheduler."""

from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest
from taskiq import InMemoryBroker, TaskiqMessage

from dispatch_service.features.notifications.channels import DeliveryOutcome
from dispatch_service.features.notifications.service import SweepResult
from dispatch_service.infra.tasks import broker as broker_module
from dispatch_service.infra.tasks import scheduler as scheduler_module
from dispatch_service.workers.notifications import tasks


@pytest.fixture
def fake_service(monkeypatch: pytest.MonkeyPatch) -> MagicMock:
    """Patch the task module's session factory and service class."""
    service = MagicMock()
    service.process = AsyncMock()
    service.sweep = AsyncMock()

    @asynccontextmanager
    async def fake_session():
        yield MagicMock()

    monkeypatch.setattr(tasks, "get_async_session", fake_session)
    monkeypatch.setattr(tasks, "NotificationService", lambda session: service)
    return service


def test_broker_falls_back_to_in_memory_without_rabbit():
    assert isinstance(broker_module.broker, InMemoryBroker)


def test_tasks_are_registered_by_name():
    assert broker_module.broker.find_task("notifications.process") is not None
    assert broker_module.broker.find_task("notifications.sweep") is not None


def _message(**labels) -> TaskiqMessage:
    return TaskiqMessage(task_id="t-1", task_name="notifications.process", labels=labels, args=[], kwargs={})


@pytest.mark.parametrize(("retries", "expected"), [(1, 1.0), (2, 2.0), (3, 4.0), (8, 60.0)])
def test_retry_delay_doubles_per_attempt(retries: int, expected: float):
    middleware = broker_module.BackoffRetryMiddleware(default_delay=1.0, use_jitter=False, max_delay_exponent=60)

    assert middleware.make_delay(_message(), retries) == expected


def test_retry_delay_uses_message_base_not_broker_delay():
    middleware = broker_module.BackoffRetryMiddleware(default_delay=5.0, use_jitter=False)

    # A stale ``delay`` from the previous retry must not compound
    message = _message(retry_delay="0.5", delay="3.2")

    assert middleware.make_delay(message, 2) == 1.0


@pytest.mark.asyncio
async def test_process_task_reports_outcome(fake_service: MagicMock):
    notification_id = uuid4()
    fake_service.process.return_value = DeliveryOutcome.failed("No phone number provided")

    result = await tasks.process_notification.original_func(str(notification_id))

    fake_service.process.assert_awaited_once_with(notification_id)
    assert result == {
        "notification_id": str(notification_id),
        "status": "failed",
        "error_message": "No phone number provided",
    }


@pytest.mark.asyncio
async def test_process_task_reports_skip(fake_service: MagicMock):
    fake_service.process.return_value = None
    notification_id = str(uuid4())

    result = await tasks.process_notification.original_func(notification_id)

    assert result == {"notification_id": notification_id, "status": "skipped"}


@pytest.mark.asyncio
async def test_process_task_propagates_errors_for_retry(fake_service: MagicMock):
    fake_service.process.side_effect = RuntimeError("provider down")

    with pytest.raises(RuntimeError):
        await tasks.process_notification.original_func(str(uuid4()))


@pytest.mark.asyncio
async def test_sweep_task_returns_counts(fake_service: MagicMock):
    fake_service.sweep.return_value = SweepResult(queued=3, expired=1, skipped=0, requeued=2)

    result = await tasks.sweep_scheduled_notifications.original_func()

    assert result == {"queued": 3, "expired": 1, "skipped": 0, "requeued": 2}


def test_scheduler_registers_sweep_job():
    scheduler_module.setup_scheduled_jobs()
    try:
        job = scheduler_module.scheduler.get_job(scheduler_module.SWEEP_JOB_ID)
        assert job is not None
        assert job.trigger.interval.total_seconds() == 60
    finally:
        scheduler_module.scheduler.remove_job(scheduler_module.SWEEP_JOB_ID)
