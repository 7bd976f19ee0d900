"""In-app channel: the stored record is the delivery."""

from __future__ import annotations

from typing import TYPE_CHECKING, ClassVar

from dispatch_service.features.notifications.channels.base import (
    ChannelCapability,
    DeliveryOutcome,
)
from dispatch_service.features.notifications.enums import NotificationType

if TYPE_CHECKING:
    from dispatch_service.features.notifications.channels.base import ChannelCollaborators
    from dispatch_service.features.notifications.models import Notification


class InAppChannel:
    notification_type: ClassVar[NotificationType] = NotificationType.IN_APP
    capabilities: ClassVar[frozenset[ChannelCapability]] = frozenset({ChannelCapability.INBOX})

    async def deliver(
        self,
        notification: Notification,
        collaborators: ChannelCollaborators,
    ) -> DeliveryOutcome:
        return DeliveryOutcome.delivered()
