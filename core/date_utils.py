"""
Centralized date and time utilities for the tracking engine.

All timestamps are handled as timezone-aware datetime objects, defaulting
to UTC. Parsing of external timestamps goes through ``dateutil`` so the
rest of the code never deals with naive values or ad hoc formats.
"""

import logging
from datetime import UTC, datetime

from dateutil import parser

logger = logging.getLogger(__name__)


def get_current_utc_time() -> datetime:
    """Return the current time as a timezone-aware datetime object in UTC."""
    return datetime.now(UTC)


def parse_timestamp(ts: str | datetime | None) -> datetime | None:
    """
    Parse a timestamp string (or datetime object) and convert it to
    UTC, treating naive values as already UTC.

    Args:
        ts: The timestamp to parse, either as an ISO 8601 string or a
            datetime object.

    Returns:
        A timezone-aware datetime object, or None if parsing fails.
    """
    if not ts:
        logger.debug("Received empty timestamp; returning None.")
        return None

    if isinstance(ts, datetime):
        return ensure_utc(ts)

    try:
        return ensure_utc(parser.isoparse(ts))
    except (ValueError, TypeError) as e:
        logger.warning("Failed to parse timestamp '%s': %s", ts, e)
        return None


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Return the datetime as an explicit UTC-aware value."""

    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)

    return dt.astimezone(UTC)


def elapsed_seconds(start: datetime, end: datetime) -> float:
    """Seconds from ``start`` to ``end``, never negative."""
    return max(0.0, (ensure_utc(end) - ensure_utc(start)).total_seconds())


def format_duration(seconds: float | int | None) -> str:
    """
    Convert a duration in seconds to a HH:MM:SS string.

    Hours are not wrapped, so a ride longer than a day reads e.g. ``"26:03:10"``.
    """
    if not seconds or seconds < 0:
        return "00:00:00"

    total_seconds = int(seconds)
    hrs = total_seconds // 3600
    mins = (total_seconds % 3600) // 60
    secs = total_seconds % 60
    return f"{hrs:02d}:{mins:02d}:{secs:02d}"


def ride_name_for_time(started_at: datetime) -> str:
    """Return a friendly ride title based on the local hour it started."""
    hour = started_at.hour

    if 4 <= hour < 7:
        return "Early Morning Ride"
    if 7 <= hour < 11:
        return "Morning Ride"
    if 11 <= hour < 13:
        return "Noon Ride"
    if 13 <= hour < 17:
        return "Afternoon Ride"
    if 17 <= hour < 20:
        return "Evening Ride"
    if 20 <= hour < 23:
        return "Night Ride"
    if hour >= 23 or hour < 2:
        return "Late Night Ride"
    return "Midnight Ride"
