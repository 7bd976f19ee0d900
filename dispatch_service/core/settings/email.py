"""Email provider settings for SMTP delivery.

Environment variables use EMAIL_ prefix.
Example: EMAIL_ENABLED=true, EMAIL_SMTP_HOST=smtp.example.com
"""

from __future__ import annotations

from pydantic import EmailStr, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class EmailSettings(BaseSettings):
    """SMTP configuration for the email channel.

    With ``enabled`` False the provider reports itself as not initialized and
    every send returns a structured failure.
    """

    enabled: bool = Field(
        default=False,
        description="Enable email sending functionality",
    )

    smtp_host: str | None = Field(
        default=None,
        max_length=255,
        description="SMTP server hostname",
    )
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (587 for TLS, 465 for SSL, 25 for plain)",
    )
    smtp_username: str | None = Field(default=None, max_length=255)
    smtp_password: SecretStr | None = Field(default=None)

    use_tls: bool = Field(
        default=True,
        description="Use STARTTLS (port 587)",
    )
    use_ssl: bool = Field(
        default=False,
        description="Use implicit SSL/TLS (port 465). Mutually exclusive with use_tls",
    )

    from_email: EmailStr = Field(
        default="noreply@example.com",
        description="Sender email address",
    )
    from_name: str = Field(
        default="Notifications",
        max_length=100,
        description="Sender display name",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="SMTP operation timeout in seconds",
    )

    @property
    def is_configured(self) -> bool:
        """Whether SMTP delivery has enough configuration to run."""
        return self.enabled and bool(self.smtp_host)

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
