"""Email channel."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from dispatch_service.features.notifications.channels.base import (
    ChannelCapability,
    DeliveryOutcome,
)
from dispatch_service.features.notifications.enums import NotificationType
from dispatch_service.features.notifications.providers import EmailPayload

if TYPE_CHECKING:
    from dispatch_service.features.notifications.channels.base import ChannelCollaborators
    from dispatch_service.features.notifications.models import Notification


class EmailChannel:
    """Sends to ``data["email"]``; HTML comes from ``data["htmlBody"]`` when present."""

    notification_type: ClassVar[NotificationType] = NotificationType.EMAIL
    capabilities: ClassVar[frozenset[ChannelCapability]] = frozenset(
        {ChannelCapability.EXTERNAL, ChannelCapability.DESTINATION}
    )

    async def deliver(
        self,
        notification: Notification,
        collaborators: ChannelCollaborators,
    ) -> DeliveryOutcome:
        data = notification.data or {}
        recipient = data.get("email")
        if not recipient:
            return DeliveryOutcome.failed("No email address provided")

        payload = EmailPayload(
            subject=notification.title,
            text=notification.body,
            html=data.get("htmlBody") or f"<p>{notification.body}</p>",
        )
        result = await collaborators.email.send_one(str(recipient), payload)
        if result.success:
            return DeliveryOutcome.sent(
                provider=result.provider,
                provider_message_id=result.provider_message_id,
            )
        return DeliveryOutcome.failed(result.error or "Email sending failed", provider=result.provider)
