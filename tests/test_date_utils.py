from datetime import UTC, datetime, timedelta, timezone

import pytest

from core.date_utils import (
    elapsed_seconds,
    ensure_utc,
    format_duration,
    get_current_utc_time,
    parse_timestamp,
    ride_name_for_time,
)


def test_parse_timestamp_handles_empty_and_invalid() -> None:
    assert parse_timestamp("") is None
    assert parse_timestamp(None) is None
    assert parse_timestamp("not-a-date") is None


def test_parse_timestamp_normalizes_to_utc() -> None:
    parsed = parse_timestamp("2024-01-01T00:00:00-05:00")
    assert parsed is not None
    assert parsed.tzinfo == UTC
    assert parsed.hour == 5


def test_ensure_utc_handles_naive_datetime() -> None:
    value = datetime(2024, 1, 1, 12, 0, 0)
    normalized = ensure_utc(value)
    assert normalized is not None
    assert normalized.tzinfo == UTC
    assert normalized.hour == 12


def test_ensure_utc_returns_none_for_none() -> None:
    """ensure_utc should return None when given None."""
    assert ensure_utc(None) is None


def test_get_current_utc_time_returns_utc() -> None:
    """get_current_utc_time should return a timezone-aware datetime in UTC."""
    now = get_current_utc_time()
    assert now.tzinfo == UTC
    assert isinstance(now, datetime)


def test_elapsed_seconds_mixes_offsets_and_never_goes_negative() -> None:
    start = datetime(2026, 5, 2, 9, 0, tzinfo=UTC)
    later = datetime(2026, 5, 2, 11, 0, 30, tzinfo=timezone(timedelta(hours=2)))

    assert elapsed_seconds(start, later) == 30.0
    assert elapsed_seconds(later, start) == 0.0


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [
        (None, "00:00:00"),
        (0, "00:00:00"),
        (-5, "00:00:00"),
        (59.9, "00:00:59"),
        (3725, "01:02:05"),
        (93790, "26:03:10"),
    ],
)
def test_format_duration(seconds: float | None, expected: str) -> None:
    assert format_duration(seconds) == expected


@pytest.mark.parametrize(
    ("hour", "expected"),
    [
        (5, "Early Morning Ride"),
        (9, "Morning Ride"),
        (12, "Noon Ride"),
        (15, "Afternoon Ride"),
        (18, "Evening Ride"),
        (21, "Night Ride"),
        (23, "Late Night Ride"),
        (0, "Late Night Ride"),
        (3, "Midnight Ride"),
    ],
)
def test_ride_name_for_time(hour: int, expected: str) -> None:
    assert ride_name_for_time(datetime(2026, 5, 2, hour, 15)) == expected
