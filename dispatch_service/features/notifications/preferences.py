"""Preference gate consulted before a notification is admitted."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

from dispatch_service.features.notifications.enums import NotificationType

if TYPE_CHECKING:
    from collections.abc import Iterable


class PreferenceGate(Protocol):
    """Decides whether a user may receive a notification on a channel."""

    async def can_send(
        self,
        user_id: str,
        workspace_id: str | None,
        notification_type: NotificationType,
    ) -> bool: ...


class AllowAllPreferenceGate:
    """Gate that admits everything."""

    async def can_send(
        self,
        user_id: str,
        workspace_id: str | None,
        notification_type: NotificationType,
    ) -> bool:
        return True


class SettingsPreferenceGate:
    """Gate that blocks channel types disabled service-wide.

    Example:
        gate = SettingsPreferenceGate(get_notification_settings().disabled_types)
        await gate.can_send("user-1", None, NotificationType.SMS)  # False if "sms" disabled
    """

    def __init__(self, disabled_types: Iterable[str] = ()) -> None:
        self._disabled = frozenset(NotificationType(t) for t in disabled_types)

    async def can_send(
        self,
        user_id: str,
        workspace_id: str | None,
        notification_type: NotificationType,
    ) -> bool:
        return NotificationType(notification_type) not in self._disabled
