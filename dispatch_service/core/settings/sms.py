"""SMS provider settings (Twilio REST API).

Environment variables use SMS_ prefix.
Example: SMS_ACCOUNT_SID=AC..., SMS_FROM_NUMBER=+15550001111
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class SmsSettings(BaseSettings):
    """Twilio credentials and sender configuration."""

    account_sid: str | None = Field(default=None, description="Twilio account SID")
    auth_token: SecretStr | None = Field(default=None, description="Twilio auth token")
    from_number: str | None = Field(
        default=None,
        description="Sender phone number in E.164 format",
    )
    base_url: str = Field(
        default="https://api.twilio.com",
        description="Twilio API base URL",
    )
    timeout: float = Field(default=10.0, gt=0, le=120)

    @property
    def is_configured(self) -> bool:
        """Whether credentials are present (the sender is checked per send)."""
        return bool(self.account_sid and self.auth_token)

    model_config = SettingsConfigDict(
        env_prefix="SMS_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
