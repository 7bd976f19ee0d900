"""Push channel: multicast to every registered device of the user."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, ClassVar

from dispatch_service.features.notifications.channels.base import (
    ChannelCapability,
    DeliveryOutcome,
)
from dispatch_service.features.notifications.enums import NotificationPriority, NotificationType
from dispatch_service.features.notifications.providers import PushPayload

if TYPE_CHECKING:
    from dispatch_service.features.notifications.channels.base import ChannelCollaborators
    from dispatch_service.features.notifications.models import Notification

logger = logging.getLogger(__name__)

_HIGH_PRIORITIES = frozenset({NotificationPriority.URGENT, NotificationPriority.HIGH})


def build_push_payload(notification: Notification) -> PushPayload:
    """Map a record onto a push payload.

    FCM data values must be strings: non-string values are JSON encoded.
    The record id and action URL ride along in the data block.
    """
    data: dict[str, str] = {}
    for key, value in (notification.data or {}).items():
        data[key] = value if isinstance(value, str) else json.dumps(value)
    data["notificationId"] = str(notification.id)
    if notification.action_url:
        data["actionUrl"] = notification.action_url

    return PushPayload(
        title=notification.title,
        body=notification.body,
        data=data,
        image_url=notification.image_url,
        priority="high" if notification.priority in _HIGH_PRIORITIES else "normal",
    )


class PushChannel:
    notification_type: ClassVar[NotificationType] = NotificationType.PUSH
    capabilities: ClassVar[frozenset[ChannelCapability]] = frozenset(
        {ChannelCapability.EXTERNAL, ChannelCapability.MULTICAST}
    )

    async def deliver(
        self,
        notification: Notification,
        collaborators: ChannelCollaborators,
    ) -> DeliveryOutcome:
        """Send to all of the user's devices.

        Any accepted token makes the record SENT; failed tokens are noted in
        ``error_message``. The record fails only when every token failed.
        """
        devices = await collaborators.devices.get_devices(notification.user_id)
        tokens = [device.token for device in devices]
        if not tokens:
            return DeliveryOutcome.failed("No registered devices")

        result = await collaborators.push.send_many(tokens, build_push_payload(notification))

        if result.failed_tokens:
            logger.warning(
                "Push tokens failed; candidates for deactivation",
                extra={
                    "notification_id": str(notification.id),
                    "user_id": notification.user_id,
                    "failed_tokens": result.failed_tokens,
                    "operation": "channel.push",
                },
            )

        if result.success_count == 0:
            return DeliveryOutcome.failed(result.first_error or "All devices failed", provider="fcm")
        first_message_id = result.message_ids[0] if result.message_ids else None
        return DeliveryOutcome.sent(
            provider="fcm",
            provider_message_id=first_message_id,
            accepted_messages=result.success_count,
            error_message=f"Partial delivery: {result.failure_count} failed" if result.failure_count else None,
        )
