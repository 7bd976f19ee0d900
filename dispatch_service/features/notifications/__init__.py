"""Notification dispatch feature: admission, scheduling, fan-out and inbox queries."""
