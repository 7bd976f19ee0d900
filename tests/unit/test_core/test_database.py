"""Tests for the shared database helpers: UUIDv7 ids, UTC timestamps and search results."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

from sqlalchemy.dialects import sqlite

from dispatch_service.core.database import SearchResult, UTCDateTime
from dispatch_service.core.database.base import generate_uuid7


def test_uuid7_is_version_7_and_time_ordered():
    first = generate_uuid7()
    later = generate_uuid7()

    assert first.version == 7
    # The leading 48 bits are the millisecond timestamp
    assert first.int >> 80 <= later.int >> 80


def test_utc_datetime_normalizes_on_bind_and_load():
    column_type = UTCDateTime()
    dialect = sqlite.dialect()
    plus_two = datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

    bound = column_type.process_bind_param(plus_two, dialect)
    loaded = column_type.process_result_value(datetime(2026, 3, 1, 12, 0), dialect)

    assert bound == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    assert bound.tzinfo is UTC
    assert loaded == datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    assert column_type.process_bind_param(None, dialect) is None


def test_search_result_pagination():
    result = SearchResult(items=[1, 2], total=5, limit=2, offset=2)

    assert result.page == 2
    assert result.pages == 3
    assert result.has_next is True
    assert SearchResult(items=[], total=0, limit=20, offset=0).pages == 0
