"""Timestamp helpers.

All stored timestamps are ISO-8601 strings in UTC. Calendar dates are
`YYYY-MM-DD` strings.
"""

from datetime import date, datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse a stored timestamp, treating naive values as UTC.

    Accepts the trailing 'Z' written by older exports.
    """
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_date_str(day: date) -> str:
    return day.isoformat()


def today_str() -> str:
    return date.today().isoformat()
