"""Capability-tagged channel variants and the type-to-channel registry.

Usage:
    channel = get_channel(NotificationType.PUSH)
    outcome = await channel.deliver(notification, collaborators)
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from dispatch_service.features.notifications.enums import NotificationType

from .base import Channel, ChannelCapability, ChannelCollaborators, DeliveryOutcome
from .email import EmailChannel
from .in_app import InAppChannel
from .push import PushChannel, build_push_payload
from .sms import SmsChannel

if TYPE_CHECKING:
    from collections.abc import Mapping

CHANNELS: Mapping[NotificationType, Channel] = {
    NotificationType.PUSH: PushChannel(),
    NotificationType.EMAIL: EmailChannel(),
    NotificationType.SMS: SmsChannel(),
    NotificationType.IN_APP: InAppChannel(),
}


def get_channel(notification_type: NotificationType | str) -> Channel:
    """Resolve the variant for a notification type.

    Raises:
        ValueError: If the type has no registered channel
    """
    try:
        return CHANNELS[NotificationType(notification_type)]
    except KeyError:
        msg = f"No channel registered for notification type {notification_type!r}"
        raise ValueError(msg) from None


def channels_with(capability: ChannelCapability) -> list[NotificationType]:
    """Notification types whose channel carries ``capability``."""
    return [t for t, channel in CHANNELS.items() if capability in channel.capabilities]


def get_channel_collaborators() -> ChannelCollaborators:
    """Collaborators wired from settings: configured providers and the shared device directory."""
    from dispatch_service.features.notifications.devices import get_device_directory
    from dispatch_service.features.notifications.providers import (
        get_email_provider,
        get_push_provider,
        get_sms_provider,
    )

    return ChannelCollaborators(
        devices=get_device_directory(),
        push=get_push_provider(),
        email=get_email_provider(),
        sms=get_sms_provider(),
    )


__all__ = [
    "CHANNELS",
    "Channel",
    "ChannelCapability",
    "ChannelCollaborators",
    "DeliveryOutcome",
    "EmailChannel",
    "InAppChannel",
    "PushChannel",
    "SmsChannel",
    "build_push_payload",
    "channels_with",
    "get_channel",
    "get_channel_collaborators",
]
