"""Twilio SMS provider over the REST API."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

import httpx

from dispatch_service.features.notifications.providers.base import ProviderResult, SmsPayload, send_each
from dispatch_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dispatch_service.core.settings.sms import SmsSettings

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

PROVIDER_NAME = "twilio"
NOT_INITIALIZED = "SMS provider not initialized"
NO_SENDER = "No sender phone number configured"

_NON_PHONE_CHARS = re.compile(r"[^\d+]")


def format_phone_number(phone: str) -> str:
    """Strip everything but digits and '+', then ensure a leading '+'."""
    formatted = _NON_PHONE_CHARS.sub("", phone)
    if not formatted.startswith("+"):
        formatted = f"+{formatted}"
    return formatted


def segment_count(body: str) -> int:
    """Estimate billable SMS segments.

    GSM-7 text fits 160 characters in one segment and 153 per segment when
    split; anything outside ASCII is sent as UCS-2 (70, or 67 when split).
    """
    length = len(body)
    if not body.isascii():
        return 1 if length <= 70 else -(-length // 67)
    return 1 if length <= 160 else -(-length // 153)


class TwilioSmsProvider:
    """SMS sender backed by Twilio's Messages resource."""

    def __init__(
        self,
        settings: SmsSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client

        if not settings.is_configured:
            logger.warning(
                "Twilio credentials not configured; SMS notifications are disabled",
                extra={"operation": "sms.init"},
            )

    @property
    def is_initialized(self) -> bool:
        return self._settings.is_configured

    @property
    def _messages_url(self) -> str:
        base = self._settings.base_url.rstrip("/")
        return f"{base}/2010-04-01/Accounts/{self._settings.account_sid}/Messages"

    @property
    def _endpoint(self) -> str:
        return f"{self._messages_url}.json"

    def _auth(self) -> tuple[str, str]:
        auth_token = self._settings.auth_token
        return (self._settings.account_sid or "", auth_token.get_secret_value() if auth_token else "")

    async def send_one(self, destination: str, payload: SmsPayload) -> ProviderResult:
        """Send one text message.

        Args:
            destination: Recipient phone number, formatted before sending
            payload: Message body, optional sender override and media

        Returns:
            ProviderResult carrying the message SID on success
        """
        if not self.is_initialized:
            logger.warning("SMS provider not initialized, skipping SMS", extra={"operation": "sms.send"})
            return ProviderResult.failed(PROVIDER_NAME, NOT_INITIALIZED)

        sender = payload.sender or self._settings.from_number
        if not sender:
            return ProviderResult.failed(PROVIDER_NAME, NO_SENDER)

        to_number = format_phone_number(destination)
        form: dict[str, str | list[str]] = {"To": to_number, "From": sender, "Body": payload.body}
        if payload.media_urls:
            form["MediaUrl"] = payload.media_urls

        auth = self._auth()

        try:
            if self._client is not None:
                response = await self._client.post(
                    self._endpoint, data=form, auth=auth, timeout=self._settings.timeout
                )
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.post(
                        self._endpoint, data=form, auth=auth, timeout=self._settings.timeout
                    )
        except httpx.TimeoutException:
            return ProviderResult.failed(
                PROVIDER_NAME, f"Request timeout after {self._settings.timeout}s"
            )
        except httpx.RequestError as e:
            logger.error(
                "SMS request error",
                extra={"error": str(e), "operation": "sms.send"},
            )
            return ProviderResult.failed(PROVIDER_NAME, f"Request error: {e}")

        body = _json_or_empty(response)
        if response.is_success:
            sid = body.get("sid")
            lazy_logger.debug(lambda: f"sms.send: to={to_number} -> {sid}")
            return ProviderResult.ok(
                PROVIDER_NAME,
                sid,
                status=body.get("status"),
                segments=segment_count(payload.body),
            )

        error = body.get("message") or f"HTTP {response.status_code}"
        logger.warning(
            "SMS delivery failed",
            extra={"status_code": response.status_code, "error": error, "operation": "sms.send"},
        )
        return ProviderResult.failed(PROVIDER_NAME, str(error), status_code=response.status_code)

    async def send_bulk(self, messages: Sequence[tuple[str, SmsPayload]]) -> list[ProviderResult]:
        """Send independent text messages concurrently, one result per message."""
        return await send_each(self, messages)

    async def get_message_status(self, message_sid: str) -> str | None:
        """Fetch the delivery status Twilio reports for a sent message.

        Returns:
            Twilio status (queued, sent, delivered, undelivered, failed, ...),
            or None when the provider is not configured or the lookup failed
        """
        if not self.is_initialized:
            return None

        url = f"{self._messages_url}/{message_sid}.json"
        try:
            if self._client is not None:
                response = await self._client.get(url, auth=self._auth(), timeout=self._settings.timeout)
            else:
                async with httpx.AsyncClient() as client:
                    response = await client.get(url, auth=self._auth(), timeout=self._settings.timeout)
        except httpx.RequestError as e:
            logger.error(
                "Failed to fetch SMS status",
                extra={"message_sid": message_sid, "error": str(e), "operation": "sms.status"},
            )
            return None

        body = _json_or_empty(response)
        if not response.is_success:
            logger.error(
                "Failed to fetch SMS status",
                extra={
                    "message_sid": message_sid,
                    "status_code": response.status_code,
                    "error": body.get("message"),
                    "operation": "sms.status",
                },
            )
            return None
        return body.get("status")


def _json_or_empty(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
