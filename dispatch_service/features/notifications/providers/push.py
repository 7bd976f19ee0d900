"""Firebase Cloud Messaging provider over the HTTP v1 API.

Each device token is a separate ``messages:send`` request; multicast fans
those requests out with bounded concurrency over a shared httpx client.
Topic subscriptions go through the Instance ID batch API.

Requests are authorized with a short-lived OAuth2 access token minted from
the service account by google-auth. The token is cached and refreshed once
it expires.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from google.auth import exceptions as google_auth_exceptions
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2 import service_account
import httpx

from dispatch_service.features.notifications.providers.base import (
    MulticastResult,
    ProviderResult,
    PushPayload,
    TokenError,
)
from dispatch_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from google.auth.credentials import Credentials

    from dispatch_service.core.settings.push import PushSettings

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

PROVIDER_NAME = "fcm"
NOT_INITIALIZED = "Push provider not initialized"
FCM_SCOPES = (
    "https://www.googleapis.com/auth/firebase.messaging",
    "https://www.googleapis.com/auth/cloud-platform",
)


class AccessTokenError(Exception):
    """The service account could not produce an access token."""


def _topic_name(topic: str) -> str:
    return topic.removeprefix("/topics/")


class FcmPushProvider:
    """Push sender backed by the FCM HTTP v1 API.

    Example:
        provider = FcmPushProvider(get_push_settings())
        result = await provider.send_many(tokens, PushPayload(title="Hi", body="..."))
    """

    def __init__(
        self,
        settings: PushSettings,
        *,
        client: httpx.AsyncClient | None = None,
        credentials: Credentials | None = None,
    ) -> None:
        """Initialize provider.

        Args:
            settings: FCM service account and transport options
            client: Optional preconfigured client (tests pass a MockTransport one)
            credentials: Optional google-auth credentials; built from the
                service account in ``settings`` on first use when omitted
        """
        self._settings = settings
        self._client = client
        self._credentials = credentials
        self._token_lock = asyncio.Lock()

        if not settings.is_configured:
            logger.warning(
                "FCM credentials not configured; push notifications are disabled",
                extra={"operation": "push.init"},
            )

    @property
    def is_initialized(self) -> bool:
        return self._settings.is_configured

    @property
    def _endpoint(self) -> str:
        base = self._settings.base_url.rstrip("/")
        return f"{base}/v1/projects/{self._settings.fcm_project_id}/messages:send"

    async def _access_token(self) -> str:
        """Return a valid access token, refreshing the cached one if needed.

        Raises:
            AccessTokenError: If the service account is unusable or the token
                endpoint refused the refresh.
        """
        async with self._token_lock:
            try:
                if self._credentials is None:
                    self._credentials = service_account.Credentials.from_service_account_info(
                        self._settings.service_account_info(),
                        scopes=FCM_SCOPES,
                    )
                if not self._credentials.valid:
                    # google-auth refreshes over a blocking requests session
                    await asyncio.to_thread(self._credentials.refresh, GoogleAuthRequest())
                    logger.info(
                        "FCM access token refreshed",
                        extra={"expiry": str(self._credentials.expiry), "operation": "push.token"},
                    )
            except (google_auth_exceptions.GoogleAuthError, ValueError) as e:
                logger.error(
                    "Failed to obtain FCM access token",
                    extra={"error": str(e), "operation": "push.token"},
                )
                raise AccessTokenError(f"Failed to obtain access token: {e}") from e
            return self._credentials.token

    @staticmethod
    def _headers(access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }

    @staticmethod
    def _message(target: dict[str, str], payload: PushPayload) -> dict[str, Any]:
        notification: dict[str, Any] = {"title": payload.title, "body": payload.body}
        if payload.image_url:
            notification["image"] = payload.image_url

        aps: dict[str, Any] = {"sound": payload.sound}
        if payload.badge is not None:
            aps["badge"] = payload.badge

        return {
            "message": {
                **target,
                "notification": notification,
                "data": payload.data,
                "android": {
                    "priority": "high" if payload.priority == "high" else "normal",
                    "notification": {"sound": payload.sound, "channel_id": "default"},
                },
                "apns": {"payload": {"aps": aps}},
            }
        }

    @classmethod
    def build_message(cls, token: str, payload: PushPayload) -> dict[str, Any]:
        """Build the FCM v1 message body for one device."""
        return cls._message({"token": token}, payload)

    @classmethod
    def build_topic_message(cls, topic: str, payload: PushPayload) -> dict[str, Any]:
        """Build the FCM v1 message body for every subscriber of a topic."""
        return cls._message({"topic": _topic_name(topic)}, payload)

    async def _send_message(
        self,
        client: httpx.AsyncClient,
        message: dict[str, Any],
        access_token: str,
    ) -> ProviderResult:
        try:
            response = await client.post(
                self._endpoint,
                json=message,
                headers=self._headers(access_token),
                timeout=self._settings.timeout,
            )
        except httpx.TimeoutException:
            return ProviderResult.failed(
                PROVIDER_NAME, f"Request timeout after {self._settings.timeout}s"
            )
        except httpx.RequestError as e:
            return ProviderResult.failed(PROVIDER_NAME, f"Request error: {e}")

        if response.is_success:
            message_id = response.json().get("name")
            target = message["message"].get("token") or message["message"].get("topic") or ""
            lazy_logger.debug(lambda: f"push.send: {target[:20]}... -> {message_id}")
            return ProviderResult.ok(PROVIDER_NAME, message_id, status_code=response.status_code)

        return ProviderResult.failed(
            PROVIDER_NAME,
            _error_message(response),
            status_code=response.status_code,
        )

    async def _with_client(self, send: Any) -> Any:
        if self._client is not None:
            return await send(self._client)
        async with httpx.AsyncClient() as client:
            return await send(client)

    async def send_one(self, destination: str, payload: PushPayload) -> ProviderResult:
        """Send to a single device token."""
        if not self.is_initialized:
            return ProviderResult.failed(PROVIDER_NAME, NOT_INITIALIZED)

        try:
            access_token = await self._access_token()
        except AccessTokenError as e:
            return ProviderResult.failed(PROVIDER_NAME, str(e))

        message = self.build_message(destination, payload)
        return await self._with_client(lambda client: self._send_message(client, message, access_token))

    async def send_many(self, destinations: list[str], payload: PushPayload) -> MulticastResult:
        """Send to every token, collecting per-token failures.

        Args:
            destinations: Device tokens
            payload: Message content

        Returns:
            MulticastResult with counts, accepted message ids and failed
            tokens in input order
        """
        if not self.is_initialized:
            logger.warning(
                "Push provider not initialized, skipping multicast",
                extra={"token_count": len(destinations), "operation": "push.send_many"},
            )
            return MulticastResult.all_failed(destinations, NOT_INITIALIZED)

        if not destinations:
            return MulticastResult(success_count=0, failure_count=0)

        try:
            access_token = await self._access_token()
        except AccessTokenError as e:
            return MulticastResult.all_failed(destinations, str(e))

        start_time = time.perf_counter()
        semaphore = asyncio.Semaphore(self._settings.max_concurrency)

        async def _bounded(client: httpx.AsyncClient, token: str) -> ProviderResult:
            async with semaphore:
                return await self._send_message(client, self.build_message(token, payload), access_token)

        async def _fan_out(client: httpx.AsyncClient) -> list[ProviderResult]:
            return await asyncio.gather(*(_bounded(client, t) for t in destinations))

        results = await self._with_client(_fan_out)

        errors = [
            TokenError(token=token, error=result.error or "Unknown error")
            for token, result in zip(destinations, results, strict=True)
            if not result.success
        ]
        outcome = MulticastResult(
            success_count=len(destinations) - len(errors),
            failure_count=len(errors),
            errors=errors,
            failed_tokens=[e.token for e in errors],
            message_ids=[r.provider_message_id for r in results if r.success and r.provider_message_id],
        )

        logger.info(
            "Push multicast sent",
            extra={
                "success_count": outcome.success_count,
                "failure_count": outcome.failure_count,
                "duration_ms": int((time.perf_counter() - start_time) * 1000),
                "operation": "push.send_many",
            },
        )
        return outcome

    # ------------------------------------------------------------------
    # Topics
    # ------------------------------------------------------------------

    async def send_to_topic(self, topic: str, payload: PushPayload) -> ProviderResult:
        """Send one message to every device subscribed to ``topic``."""
        if not self.is_initialized:
            logger.warning("Push provider not initialized, skipping topic send", extra={"topic": topic})
            return ProviderResult.failed(PROVIDER_NAME, NOT_INITIALIZED)

        try:
            access_token = await self._access_token()
        except AccessTokenError as e:
            return ProviderResult.failed(PROVIDER_NAME, str(e))

        message = self.build_topic_message(topic, payload)
        result = await self._with_client(lambda client: self._send_message(client, message, access_token))

        log = logger.info if result.success else logger.warning
        log(
            "Push topic send finished",
            extra={"topic": _topic_name(topic), "success": result.success, "operation": "push.send_to_topic"},
        )
        return result

    async def subscribe_to_topic(self, tokens: list[str], topic: str) -> MulticastResult:
        """Subscribe device tokens to ``topic``."""
        return await self._manage_topic("batchAdd", tokens, topic)

    async def unsubscribe_from_topic(self, tokens: list[str], topic: str) -> MulticastResult:
        """Unsubscribe device tokens from ``topic``."""
        return await self._manage_topic("batchRemove", tokens, topic)

    async def _manage_topic(self, action: str, tokens: list[str], topic: str) -> MulticastResult:
        """Call the Instance ID batch API; results come back one per token, in order."""
        operation = f"push.topic.{action}"
        if not self.is_initialized:
            logger.warning(
                "Push provider not initialized, skipping topic subscription change",
                extra={"topic": topic, "operation": operation},
            )
            return MulticastResult.all_failed(tokens, NOT_INITIALIZED)

        if not tokens:
            return MulticastResult(success_count=0, failure_count=0)

        try:
            access_token = await self._access_token()
        except AccessTokenError as e:
            return MulticastResult.all_failed(tokens, str(e))

        url = f"{self._settings.iid_base_url.rstrip('/')}/iid/v1:{action}"
        body = {"to": f"/topics/{_topic_name(topic)}", "registration_tokens": tokens}
        headers = {**self._headers(access_token), "access_token_auth": "true"}

        async def _call(client: httpx.AsyncClient) -> httpx.Response:
            return await client.post(url, json=body, headers=headers, timeout=self._settings.timeout)

        try:
            response = await self._with_client(_call)
        except httpx.TimeoutException:
            return MulticastResult.all_failed(tokens, f"Request timeout after {self._settings.timeout}s")
        except httpx.RequestError as e:
            return MulticastResult.all_failed(tokens, f"Request error: {e}")

        if not response.is_success:
            error = _error_message(response)
            logger.error(
                "Topic subscription change failed",
                extra={"topic": topic, "status_code": response.status_code, "error": error, "operation": operation},
            )
            return MulticastResult.all_failed(tokens, error)

        results = response.json().get("results") or [{} for _ in tokens]
        errors = [
            TokenError(token=token, error=str(item["error"]))
            for token, item in zip(tokens, results, strict=False)
            if item.get("error")
        ]
        logger.info(
            "Topic subscription changed",
            extra={
                "topic": _topic_name(topic),
                "token_count": len(tokens),
                "failure_count": len(errors),
                "operation": operation,
            },
        )
        return MulticastResult(
            success_count=len(tokens) - len(errors),
            failure_count=len(errors),
            errors=errors,
            failed_tokens=[e.token for e in errors],
        )


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return f"HTTP {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str):
        return error
    return f"HTTP {response.status_code}"
