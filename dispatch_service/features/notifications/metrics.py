"""Prometheus metrics for notification dispatch.

Usage:
    from dispatch_service.features.notifications.metrics import (
        notification_created_total,
        notification_delivered_total,
    )

    notification_created_total.labels(notification_type="push", priority="high").inc()
    notification_delivered_total.labels(channel="email", status="sent").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

from dispatch_service.infra.metrics import DEFAULT_LATENCY_BUCKETS, REGISTRY

notification_created_total = Counter(
    "notification_created_total",
    "Total number of notifications persisted",
    labelnames=["notification_type", "priority"],
    registry=REGISTRY,
)

notification_dropped_total = Counter(
    "notification_dropped_total",
    "Notifications silently dropped at admission",
    labelnames=["reason"],
    registry=REGISTRY,
)
"""
Labels:
    reason: rate_limited or preference_blocked
"""

notification_delivered_total = Counter(
    "notification_delivered_total",
    "Delivery attempts by channel and resulting status",
    labelnames=["channel", "status"],
    registry=REGISTRY,
)

notification_delivery_duration_seconds = Histogram(
    "notification_delivery_duration_seconds",
    "Time spent in the channel delivery call",
    labelnames=["channel"],
    buckets=DEFAULT_LATENCY_BUCKETS,
    registry=REGISTRY,
)

notification_swept_total = Counter(
    "notification_swept_total",
    "Scheduled notifications handled by the sweep",
    labelnames=["outcome"],
    registry=REGISTRY,
)
"""
Labels:
    outcome: queued, expired, skipped or requeued
"""

notification_provider_messages_total = Counter(
    "notification_provider_messages_total",
    "Messages accepted by an external provider",
    labelnames=["provider"],
    registry=REGISTRY,
)

notification_enqueue_failures_total = Counter(
    "notification_enqueue_failures_total",
    "Dispatch jobs the broker refused; the sweep resubmits them",
    registry=REGISTRY,
)
