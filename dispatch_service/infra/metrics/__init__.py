"""Prometheus metrics registry and shared instruments."""

from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .prometheus import (
    DEFAULT_LATENCY_BUCKETS,
    REGISTRY,
    rate_limit_rejections_total,
    rate_limit_tracked_users,
)

__all__ = [
    "CONTENT_TYPE_LATEST",
    "DEFAULT_LATENCY_BUCKETS",
    "REGISTRY",
    "generate_latest",
    "rate_limit_rejections_total",
    "rate_limit_tracked_users",
]
