"""Channel providers for push, email and SMS delivery."""

from __future__ import annotations

from functools import lru_cache

from dispatch_service.core.settings import (
    get_email_settings,
    get_push_settings,
    get_sms_settings,
)

from .base import (
    ChannelProvider,
    EmailPayload,
    MulticastResult,
    ProviderResult,
    PushPayload,
    PushProvider,
    SmsPayload,
    TokenError,
    send_each,
)
from .email import SmtpEmailProvider
from .push import AccessTokenError, FcmPushProvider
from .sms import TwilioSmsProvider, format_phone_number, segment_count


@lru_cache(maxsize=1)
def get_push_provider() -> FcmPushProvider:
    return FcmPushProvider(get_push_settings())


@lru_cache(maxsize=1)
def get_email_provider() -> SmtpEmailProvider:
    return SmtpEmailProvider(get_email_settings())


@lru_cache(maxsize=1)
def get_sms_provider() -> TwilioSmsProvider:
    return TwilioSmsProvider(get_sms_settings())


__all__ = [
    "AccessTokenError",
    "ChannelProvider",
    "EmailPayload",
    "FcmPushProvider",
    "MulticastResult",
    "ProviderResult",
    "PushPayload",
    "PushProvider",
    "SmsPayload",
    "SmtpEmailProvider",
    "TokenError",
    "TwilioSmsProvider",
    "format_phone_number",
    "get_email_provider",
    "get_push_provider",
    "get_sms_provider",
    "segment_count",
    "send_each",
]
