"""Taskiq worker task modules."""
