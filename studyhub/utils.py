"""Utility functions for StudyHub.

This module provides common helper functions for datetime handling,
identifier generation and pagination arithmetic.
"""

import math
import uuid
from datetime import UTC, date, datetime, timedelta

from dateutil import parser as dateutil_parser  # type: ignore[import-untyped]


def parse_datetime(value: str | datetime | None) -> datetime | None:
    """Parse ISO8601 timestamp string into timezone-aware UTC datetime.

    Args:
        value: ISO8601 timestamp string, datetime object, or None

    Returns:
        Parsed timezone-aware datetime in UTC, or None if input is None

    Raises:
        ValueError: If timestamp format is invalid

    Example:
        >>> dt = parse_datetime("2024-01-15T10:30:00Z")
        >>> dt.tzinfo
        datetime.timezone.utc
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    dt = dateutil_parser.isoparse(value)

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def parse_date(value: str | date | datetime | None) -> date | None:
    """Parse an ISO8601 date (or timestamp) into a calendar date.

    Timestamps keep their own calendar day; no timezone conversion is applied.

    Example:
        >>> parse_date("2024-01-15")
        datetime.date(2024, 1, 15)
        >>> parse_date("2024-01-15T23:30:00Z")
        datetime.date(2024, 1, 15)
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return dateutil_parser.isoparse(value).date()


def utc_now() -> datetime:
    """Get current UTC timestamp as timezone-aware datetime."""
    return datetime.now(UTC)


def utc_now_iso() -> str:
    """Get current UTC timestamp as ISO8601 string with 'Z' suffix.

    Always carries microseconds so stored timestamps sort lexicographically.

    Example:
        >>> utc_now_iso().endswith('Z')
        True
    """
    return utc_now().isoformat(timespec="microseconds").replace("+00:00", "Z")


def format_iso(dt: datetime | None) -> str | None:
    """Format datetime as ISO8601 string with 'Z' suffix.

    Example:
        >>> from datetime import UTC
        >>> format_iso(datetime(2024, 1, 15, 10, 30, tzinfo=UTC))
        '2024-01-15T10:30:00Z'
    """
    if dt is None:
        return None
    return dt.isoformat().replace("+00:00", "Z")


def local_today() -> date:
    """Get today's calendar date in the server's local timezone."""
    return datetime.now().date()


def trailing_days(end: date, days: int = 7) -> list[date]:
    """List ``days`` consecutive dates ending at ``end``, oldest first.

    Example:
        >>> trailing_days(date(2024, 1, 3), 3)
        [datetime.date(2024, 1, 1), datetime.date(2024, 1, 2), datetime.date(2024, 1, 3)]
    """
    return [end - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def new_id() -> str:
    """Generate a new opaque record identifier."""
    return uuid.uuid4().hex


def total_pages(total: int, limit: int) -> int:
    """Number of pages needed to show ``total`` items ``limit`` at a time.

    Example:
        >>> total_pages(21, 10)
        3
        >>> total_pages(0, 10)
        0
    """
    return math.ceil(total / limit) if limit > 0 else 0


def percentage(part: float, whole: float) -> float:
    """Compute ``part / whole * 100``, defined as 0 when ``whole`` is 0.

    Example:
        >>> percentage(1, 4)
        25.0
        >>> percentage(3, 0)
        0.0
    """
    if not whole:
        return 0.0
    return part / whole * 100
