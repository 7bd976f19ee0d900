"""SMS channel."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from dispatch_service.features.notifications.channels.base import (
    ChannelCapability,
    DeliveryOutcome,
)
from dispatch_service.features.notifications.enums import NotificationType
from dispatch_service.features.notifications.providers import SmsPayload

if TYPE_CHECKING:
    from dispatch_service.features.notifications.channels.base import ChannelCollaborators
    from dispatch_service.features.notifications.models import Notification


class SmsChannel:
    """Texts ``title`` and ``body`` on two lines to ``data["phone"]``."""

    notification_type: ClassVar[NotificationType] = NotificationType.SMS
    capabilities: ClassVar[frozenset[ChannelCapability]] = frozenset(
        {ChannelCapability.EXTERNAL, ChannelCapability.DESTINATION}
    )

    async def deliver(
        self,
        notification: Notification,
        collaborators: ChannelCollaborators,
    ) -> DeliveryOutcome:
        phone = (notification.data or {}).get("phone")
        if not phone:
            return DeliveryOutcome.failed("No phone number provided")

        result = await collaborators.sms.send_one(
            str(phone),
            SmsPayload(body=f"{notification.title}\n{notification.body}"),
        )
        if result.success:
            return DeliveryOutcome.sent(
                provider=result.provider,
                provider_message_id=result.provider_message_id,
            )
        return DeliveryOutcome.failed(result.error or "SMS sending failed", provider=result.provider)
