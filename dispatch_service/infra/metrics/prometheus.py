"""Prometheus registry and infrastructure-level metrics."""

from __future__ import annotations

from prometheus_client import CollectorRegistry, Counter, Gauge

# Custom registry so tests and the /metrics endpoint only see service metrics
REGISTRY = CollectorRegistry()

# Covers provider round trips from 5ms to 30s
DEFAULT_LATENCY_BUCKETS = (
    0.005,
    0.01,
    0.025,
    0.05,
    0.1,
    0.25,
    0.5,
    1.0,
    2.5,
    5.0,
    10.0,
    30.0,
)

rate_limit_rejections_total = Counter(
    "rate_limit_rejections_total",
    "Admission attempts rejected by the per-user rate limiter",
    registry=REGISTRY,
)

rate_limit_tracked_users = Gauge(
    "rate_limit_tracked_users",
    "Per-user rate limit windows currently held in memory",
    registry=REGISTRY,
)
