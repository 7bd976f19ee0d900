"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (app/db/logging/broker/dispatch/providers), read
from environment variables or a .env file, and cached by the loaders:

    from dispatch_service.core.settings import get_notification_settings
"""

from __future__ import annotations

from .app import AppSettings
from .database import DatabaseSettings
from .email import EmailSettings
from .loader import (
    clear_all_settings_caches,
    get_app_settings,
    get_db_settings,
    get_email_settings,
    get_logging_settings,
    get_notification_settings,
    get_push_settings,
    get_rabbit_settings,
    get_sms_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .push import PushSettings
from .rabbit import RabbitSettings
from .sms import SmsSettings

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "EmailSettings",
    "LoggingSettings",
    "NotificationSettings",
    "PushSettings",
    "RabbitSettings",
    "SmsSettings",
    "clear_all_settings_caches",
    "get_app_settings",
    "get_db_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_push_settings",
    "get_rabbit_settings",
    "get_sms_settings",
]
