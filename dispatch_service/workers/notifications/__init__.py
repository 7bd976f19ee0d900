"""Notification delivery and sweep tasks."""
