"""SMTP email provider using aiosmtplib."""

from __future__ import annotations

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
import logging
from typing import TYPE_CHECKING

import aiosmtplib

from dispatch_service.features.notifications.providers.base import EmailPayload, ProviderResult, send_each
from dispatch_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Sequence

    from dispatch_service.core.settings.email import EmailSettings

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

PROVIDER_NAME = "smtp"
NOT_INITIALIZED = "Email provider not initialized"


class SmtpEmailProvider:
    """Email sender over SMTP.

    Supports STARTTLS (port 587), implicit TLS (port 465) and plain SMTP.
    One connection is opened per message.
    """

    def __init__(self, settings: EmailSettings) -> None:
        self._settings = settings

        if settings.is_configured:
            logger.info(
                "SMTP provider initialized",
                extra={
                    "host": settings.smtp_host,
                    "port": settings.smtp_port,
                    "use_tls": settings.use_tls,
                    "use_ssl": settings.use_ssl,
                    "operation": "email.init",
                },
            )
        else:
            logger.warning(
                "SMTP not configured; email notifications are disabled",
                extra={"operation": "email.init"},
            )

    @property
    def is_initialized(self) -> bool:
        return self._settings.is_configured

    def build_message(self, destination: str, payload: EmailPayload) -> MIMEMultipart:
        """Build a multipart/alternative message with text and optional HTML parts."""
        message = MIMEMultipart("alternative")
        message["From"] = formataddr((self._settings.from_name, str(self._settings.from_email)))
        message["To"] = destination
        message["Subject"] = payload.subject
        message["Date"] = formatdate(localtime=False)
        message["Message-ID"] = make_msgid(domain=str(self._settings.from_email).rsplit("@", 1)[-1])
        if payload.reply_to:
            message["Reply-To"] = payload.reply_to

        message.attach(MIMEText(payload.text, "plain", "utf-8"))
        if payload.html:
            message.attach(MIMEText(payload.html, "html", "utf-8"))
        return message

    async def send_one(self, destination: str, payload: EmailPayload) -> ProviderResult:
        """Send one email.

        Args:
            destination: Recipient address
            payload: Subject and bodies

        Returns:
            ProviderResult carrying the Message-ID on success
        """
        if not self.is_initialized:
            logger.warning("Email provider not initialized, skipping email", extra={"operation": "email.send"})
            return ProviderResult.failed(PROVIDER_NAME, NOT_INITIALIZED)

        message = self.build_message(destination, payload)
        message_id = message["Message-ID"]
        password = self._settings.smtp_password

        try:
            errors, response = await aiosmtplib.send(
                message,
                hostname=self._settings.smtp_host,
                port=self._settings.smtp_port,
                username=self._settings.smtp_username,
                password=password.get_secret_value() if password else None,
                use_tls=self._settings.use_ssl,
                start_tls=self._settings.use_tls and not self._settings.use_ssl,
                timeout=self._settings.timeout,
            )
        except aiosmtplib.SMTPAuthenticationError as e:
            logger.error(
                "SMTP authentication failed",
                extra={"error": str(e), "operation": "email.send"},
            )
            return ProviderResult.failed(PROVIDER_NAME, f"Authentication failed: {e.message}")
        except aiosmtplib.SMTPRecipientsRefused as e:
            return ProviderResult.failed(
                PROVIDER_NAME,
                "Recipient refused",
                rejected=[r.recipient for r in e.recipients],
            )
        except (aiosmtplib.SMTPException, TimeoutError, OSError) as e:
            logger.warning(
                "SMTP send failed",
                extra={"error": str(e), "operation": "email.send"},
            )
            return ProviderResult.failed(PROVIDER_NAME, str(e) or type(e).__name__)

        if destination in errors:
            return ProviderResult.failed(PROVIDER_NAME, str(errors[destination]))

        lazy_logger.debug(lambda: f"email.send: to={destination} -> {message_id} ({response})")
        return ProviderResult.ok(PROVIDER_NAME, message_id)

    async def send_bulk(self, messages: Sequence[tuple[str, EmailPayload]]) -> list[ProviderResult]:
        """Send independent emails concurrently, one SMTP connection each.

        Returns:
            One result per message, in input order
        """
        return await send_each(self, messages)
