"""Unit tests for utility functions."""

from datetime import UTC, date, datetime, timezone

import pytest

from studyhub.utils import (
    format_iso,
    new_id,
    parse_date,
    parse_datetime,
    percentage,
    total_pages,
    trailing_days,
    utc_now,
    utc_now_iso,
)


class TestDatetimeFunctions:
    """Tests for datetime utility functions."""

    def test_parse_datetime_valid_iso(self):
        result = parse_datetime("2024-01-15T10:30:00Z")
        assert result is not None
        assert (result.year, result.month, result.day) == (2024, 1, 15)
        assert (result.hour, result.minute) == (10, 30)
        assert result.tzinfo == timezone.utc

    def test_parse_datetime_with_offset(self):
        """Offsets are converted to UTC."""
        result = parse_datetime("2024-01-15T10:30:00+05:00")
        assert result is not None
        assert result.hour == 5
        assert result.tzinfo == timezone.utc

    def test_parse_datetime_naive_datetime(self):
        result = parse_datetime(datetime(2024, 1, 15, 10, 30))
        assert result is not None
        assert result.tzinfo == UTC

    def test_parse_datetime_none(self):
        assert parse_datetime(None) is None

    def test_parse_datetime_invalid(self):
        with pytest.raises(ValueError):
            parse_datetime("not-a-date")

    def test_parse_date_variants(self):
        assert parse_date("2024-01-15") == date(2024, 1, 15)
        assert parse_date("2024-01-15T23:30:00Z") == date(2024, 1, 15)
        assert parse_date(datetime(2024, 1, 15, 8)) == date(2024, 1, 15)
        assert parse_date(date(2024, 1, 15)) == date(2024, 1, 15)
        assert parse_date(None) is None

    def test_utc_now_is_aware(self):
        assert utc_now().tzinfo == UTC

    def test_utc_now_iso_format(self):
        value = utc_now_iso()
        assert value.endswith("Z")
        # Always carries microseconds
        assert "." in value
        assert len(value) == len("2024-01-15T10:30:00.000000Z")

    def test_utc_now_iso_sorts_chronologically(self):
        first = utc_now_iso()
        second = utc_now_iso()
        assert first <= second

    def test_format_iso(self):
        assert format_iso(datetime(2024, 1, 15, 10, 30, tzinfo=UTC)) == "2024-01-15T10:30:00Z"
        assert format_iso(None) is None


class TestTrailingDays:
    """Tests for the trailing date window."""

    def test_seven_days_oldest_first(self):
        days = trailing_days(date(2024, 3, 10))
        assert len(days) == 7
        assert days[0] == date(2024, 3, 4)
        assert days[-1] == date(2024, 3, 10)

    def test_crosses_month_boundary(self):
        days = trailing_days(date(2024, 3, 2), 3)
        assert days == [date(2024, 2, 29), date(2024, 3, 1), date(2024, 3, 2)]


class TestArithmetic:
    """Tests for pagination and percentage helpers."""

    @pytest.mark.parametrize(
        ("total", "limit", "expected"),
        [(0, 10, 0), (1, 10, 1), (10, 10, 1), (21, 10, 3), (5, 0, 0)],
    )
    def test_total_pages(self, total, limit, expected):
        assert total_pages(total, limit) == expected

    def test_percentage(self):
        assert percentage(1, 4) == 25.0
        assert percentage(2, 3) == pytest.approx(66.666, rel=1e-3)

    def test_percentage_zero_whole(self):
        assert percentage(5, 0) == 0.0


def test_new_id_unique():
    ids = {new_id() for _ in range(100)}
    assert len(ids) == 100
    assert all(len(i) == 32 for i in ids)
