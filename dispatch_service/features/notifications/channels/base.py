"""Channel variant contract and delivery outcome."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, ClassVar, Protocol

from dispatch_service.features.notifications.enums import NotificationStatus, NotificationType

if TYPE_CHECKING:
    from dispatch_service.features.notifications.devices import DeviceDirectory
    from dispatch_service.features.notifications.models import Notification
    from dispatch_service.features.notifications.providers import (
        ChannelProvider,
        EmailPayload,
        PushProvider,
        SmsPayload,
    )


class ChannelCapability(StrEnum):
    """What a channel variant needs or does."""

    EXTERNAL = "external"  # calls a third-party provider
    MULTICAST = "multicast"  # one record, many device endpoints
    DESTINATION = "destination"  # requires an address in the record data
    INBOX = "inbox"  # delivered by persisting, readable in the user's inbox


@dataclass(frozen=True, slots=True)
class DeliveryOutcome:
    """Result of one channel delivery attempt.

    Attributes:
        status: SENT, DELIVERED or FAILED
        error_message: Failure reason, or the partial-delivery note on SENT
        provider_message_id: Provider id, for logs and metrics only
        provider: Name of the provider that handled the send
        accepted_messages: Messages the provider accepted (one per device on push)
    """

    status: NotificationStatus
    error_message: str | None = None
    provider_message_id: str | None = None
    provider: str | None = None
    accepted_messages: int = 0

    @property
    def succeeded(self) -> bool:
        return self.status != NotificationStatus.FAILED

    @classmethod
    def sent(
        cls,
        *,
        provider: str | None = None,
        provider_message_id: str | None = None,
        error_message: str | None = None,
        accepted_messages: int | None = None,
    ) -> DeliveryOutcome:
        if accepted_messages is None:
            accepted_messages = 1 if provider_message_id else 0
        return cls(
            status=NotificationStatus.SENT,
            error_message=error_message,
            provider_message_id=provider_message_id,
            provider=provider,
            accepted_messages=accepted_messages,
        )

    @classmethod
    def delivered(cls) -> DeliveryOutcome:
        return cls(status=NotificationStatus.DELIVERED)

    @classmethod
    def failed(cls, error_message: str, *, provider: str | None = None) -> DeliveryOutcome:
        return cls(status=NotificationStatus.FAILED, error_message=error_message, provider=provider)


@dataclass(slots=True)
class ChannelCollaborators:
    """External collaborators a channel may call during delivery."""

    devices: DeviceDirectory
    push: PushProvider
    email: ChannelProvider[EmailPayload]
    sms: ChannelProvider[SmsPayload]


class Channel(Protocol):
    """A delivery variant for one notification type.

    Variants never write to the record; the service applies the outcome.
    Expected failures (missing destination, provider rejection) come back as
    FAILED outcomes. Unexpected exceptions propagate.
    """

    notification_type: ClassVar[NotificationType]
    capabilities: ClassVar[frozenset[ChannelCapability]]

    async def deliver(
        self,
        notification: Notification,
        collaborators: ChannelCollaborators,
    ) -> DeliveryOutcome: ...
