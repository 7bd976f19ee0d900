"""Tests for submission policy, the taskiq dispatch queue, preferences and devices."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from dispatch_service.core.settings.notifications import NotificationSettings
from dispatch_service.features.notifications.devices import Device, InMemoryDeviceDirectory
from dispatch_service.features.notifications.enums import NotificationPriority, NotificationType
from dispatch_service.features.notifications.preferences import (
    AllowAllPreferenceGate,
    SettingsPreferenceGate,
)
from dispatch_service.features.notifications.queue import SubmissionPolicy, TaskiqDispatchQueue


class TestSubmissionPolicy:
    @pytest.mark.parametrize(
        ("priority", "expected"),
        [("urgent", 1), ("high", 2), ("normal", 3), ("low", 4)],
    )
    def test_priority_mapping(self, priority, expected):
        policy = SubmissionPolicy.for_priority(priority)

        assert policy.priority == expected
        assert policy.max_attempts == 3
        assert policy.backoff_initial_ms == 1000

    def test_settings_override_attempts_and_backoff(self):
        settings = NotificationSettings(queue_max_attempts=5, queue_backoff_initial_ms=250)

        policy = SubmissionPolicy.for_priority(NotificationPriority.LOW, settings)

        assert policy == SubmissionPolicy(priority=4, max_attempts=5, backoff_initial_ms=250)


class TestTaskiqDispatchQueue:
    def test_broker_priority_serves_urgent_first(self):
        queue = TaskiqDispatchQueue(max_priority=10)

        urgent = queue.broker_priority(SubmissionPolicy(priority=1))
        low = queue.broker_priority(SubmissionPolicy(priority=4))

        assert urgent == 10
        assert low == 7

    @pytest.mark.asyncio
    async def test_enqueue_kicks_process_task_with_retry_labels(self, monkeypatch):
        from dispatch_service.workers.notifications import tasks

        kicker = MagicMock()
        kicker.with_labels.return_value = kicker
        kicker.kiq = AsyncMock(return_value=SimpleNamespace(task_id="task-1"))
        monkeypatch.setattr(tasks.process_notification, "kicker", lambda: kicker)
        notification_id = uuid4()

        await TaskiqDispatchQueue().enqueue(notification_id, SubmissionPolicy(priority=2))

        kicker.with_labels.assert_called_once_with(
            priority=9,
            retry_on_error=True,
            max_retries=3,
            retry_delay=1.0,
        )
        kicker.kiq.assert_awaited_once_with(str(notification_id))

    @pytest.mark.asyncio
    async def test_first_attempt_is_not_delayed(self, monkeypatch):
        from dispatch_service.infra.tasks.broker import broker

        kick = AsyncMock()
        monkeypatch.setattr(broker, "kick", kick)

        await TaskiqDispatchQueue().enqueue(uuid4(), SubmissionPolicy(priority=1))

        message = kick.await_args.args[0]
        assert message.task_name == "notifications.process"
        assert "delay" not in message.labels
        assert float(message.labels["retry_delay"]) == 1.0


class TestPreferenceGates:
    @pytest.mark.asyncio
    async def test_allow_all(self):
        assert await AllowAllPreferenceGate().can_send("u", None, NotificationType.SMS) is True

    @pytest.mark.asyncio
    async def test_disabled_types_are_blocked(self):
        gate = SettingsPreferenceGate(["sms", "email"])

        assert await gate.can_send("u", "ws", NotificationType.SMS) is False
        assert await gate.can_send("u", "ws", NotificationType.EMAIL) is False
        assert await gate.can_send("u", "ws", NotificationType.PUSH) is True

    def test_unknown_disabled_type_is_rejected(self):
        with pytest.raises(ValueError):
            SettingsPreferenceGate(["fax"])


class TestInMemoryDeviceDirectory:
    @pytest.mark.asyncio
    async def test_register_deduplicates_and_deactivate_removes(self):
        directory = InMemoryDeviceDirectory()
        directory.register("u1", Device("t1", "ios"))
        directory.register("u1", Device("t1", "ios"))
        directory.register("u1", Device("t2", "android"))
        directory.register("u2", Device("t3"))

        removed = directory.deactivate(["t1", "t3", "unknown"])

        assert removed == 2
        assert await directory.get_devices("u1") == [Device("t2", "android")]
        assert await directory.get_devices("u2") == []
        assert await directory.get_devices("nobody") == []
