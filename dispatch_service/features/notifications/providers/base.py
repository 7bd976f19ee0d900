"""Provider contract shared by the push, email and SMS adapters.

Every adapter exposes ``is_initialized`` and ``send_one``; the push adapter
also exposes ``send_many`` for multicast. A provider without credentials
never raises on send: it returns a structured failure instead.

Transport errors the adapter understands (HTTP status errors, timeouts,
SMTP rejections) become failed results. Anything else propagates so the
worker's retry policy can deal with it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProviderResult:
    """Outcome of a single send.

    Attributes:
        success: Whether the provider accepted the message
        provider: Provider name (fcm, smtp, twilio)
        provider_message_id: Provider-assigned id, for logs and metrics only
        error: Error description if failed
        metadata: Provider-specific extras (HTTP status, SMS status, ...)
    """

    success: bool
    provider: str
    provider_message_id: str | None = None
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(
        cls,
        provider: str,
        provider_message_id: str | None = None,
        **metadata: Any,
    ) -> ProviderResult:
        return cls(
            success=True,
            provider=provider,
            provider_message_id=provider_message_id,
            metadata=metadata,
        )

    @classmethod
    def failed(cls, provider: str, error: str, **metadata: Any) -> ProviderResult:
        return cls(success=False, provider=provider, error=error, metadata=metadata)


@dataclass(frozen=True, slots=True)
class TokenError:
    """Per-token failure inside a multicast."""

    token: str
    error: str


@dataclass(frozen=True, slots=True)
class MulticastResult:
    """Aggregate outcome of a push multicast.

    Attributes:
        success_count: Tokens the provider accepted
        failure_count: Tokens that failed
        errors: One entry per failed token, in input order
        failed_tokens: Failed tokens, in input order
        message_ids: Provider ids of the accepted messages
    """

    success_count: int
    failure_count: int
    errors: list[TokenError] = field(default_factory=list)
    failed_tokens: list[str] = field(default_factory=list)
    message_ids: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failure_count == 0

    @property
    def first_error(self) -> str | None:
        return self.errors[0].error if self.errors else None

    @classmethod
    def all_failed(cls, tokens: list[str], error: str) -> MulticastResult:
        return cls(
            success_count=0,
            failure_count=len(tokens),
            errors=[TokenError(token=t, error=error) for t in tokens],
            failed_tokens=list(tokens),
        )


@dataclass(frozen=True, slots=True)
class PushPayload:
    """Content of a push message.

    ``data`` values must already be strings; FCM rejects anything else.
    """

    title: str
    body: str
    data: dict[str, str] = field(default_factory=dict)
    image_url: str | None = None
    priority: str = "normal"
    sound: str = "default"
    badge: int | None = None


@dataclass(frozen=True, slots=True)
class EmailPayload:
    """Content of an email message."""

    subject: str
    text: str
    html: str | None = None
    reply_to: str | None = None


@dataclass(frozen=True, slots=True)
class SmsPayload:
    """Content of an SMS message."""

    body: str
    sender: str | None = None
    media_urls: list[str] = field(default_factory=list)


@runtime_checkable
class ChannelProvider[P](Protocol):
    """Single-destination send contract."""

    @property
    def is_initialized(self) -> bool: ...

    async def send_one(self, destination: str, payload: P) -> ProviderResult: ...


@runtime_checkable
class PushProvider(ChannelProvider[PushPayload], Protocol):
    """Push adds a multicast send over many device tokens."""

    async def send_many(self, destinations: list[str], payload: PushPayload) -> MulticastResult: ...


async def send_each[P](
    provider: ChannelProvider[P],
    messages: Sequence[tuple[str, P]],
) -> list[ProviderResult]:
    """Send independent messages concurrently through ``provider``.

    Args:
        provider: Any single-destination provider
        messages: (destination, payload) pairs

    Returns:
        One result per message, in input order
    """
    results = list(await asyncio.gather(*(provider.send_one(d, p) for d, p in messages)))
    logger.info(
        "Bulk send finished",
        extra={
            "provider": type(provider).__name__,
            "requested": len(messages),
            "succeeded": sum(1 for r in results if r.success),
            "operation": "provider.send_each",
        },
    )
    return results
