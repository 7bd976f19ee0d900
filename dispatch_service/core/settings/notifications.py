"""Dispatch core settings: rate limiting, sweep cadence and queue policy.

Environment variables use NOTIFY_ prefix.
Example: NOTIFY_RATE_LIMIT_MAX=100, NOTIFY_SWEEP_BATCH_SIZE=100
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class NotificationSettings(BaseSettings):
    """Tunables for admission, scheduling and delivery."""

    # ──────────────────────────────────────────────────────────────
    # Per-user rate limiting
    # ──────────────────────────────────────────────────────────────

    rate_limit_max: int = Field(
        default=100,
        ge=1,
        description="Notifications admitted per user within one window",
    )
    rate_limit_window_seconds: float = Field(
        default=60.0,
        gt=0,
        description="Length of the per-user rate limit window",
    )
    rate_limit_eviction_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="How often expired rate limit windows are evicted",
    )
    rate_limit_max_tracked_users: int = Field(
        default=100_000,
        ge=1,
        description="Hard bound on the number of tracked user windows",
    )

    # ──────────────────────────────────────────────────────────────
    # Scheduled sweep
    # ──────────────────────────────────────────────────────────────

    sweep_batch_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Maximum due scheduled notifications promoted per tick",
    )
    sweep_interval_minutes: int = Field(
        default=1,
        ge=1,
        description="Scheduler cadence for the sweep job",
    )

    # ──────────────────────────────────────────────────────────────
    # Queue submission policy
    # ──────────────────────────────────────────────────────────────

    queue_max_attempts: int = Field(
        default=3,
        ge=1,
        le=20,
        description="Delivery attempts per queued job",
    )
    queue_backoff_initial_ms: int = Field(
        default=1000,
        ge=0,
        description="Initial delay for the exponential retry backoff",
    )
    claim_timeout_seconds: int = Field(
        default=300,
        ge=1,
        description="In-flight claims older than this may be taken over by another worker",
    )

    # ──────────────────────────────────────────────────────────────
    # Query defaults / policy
    # ──────────────────────────────────────────────────────────────

    default_page_size: int = Field(default=20, ge=1, le=100)
    failed_list_limit: int = Field(default=50, ge=1, le=1000)
    disabled_types: list[str] = Field(
        default_factory=list,
        description="Notification types blocked service-wide (e.g. ['sms'])",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )
