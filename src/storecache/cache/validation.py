"""Staleness checks for cached collections."""

from datetime import datetime, timezone
from typing import Any, Optional


def utc_now() -> datetime:
    """Return the current time as a UTC-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(timestamp: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp.

    Accepts ISO 8601 strings and Unix timestamps. Anything else, including
    malformed strings, yields None so that callers treat the entry as stale.

    Args:
        value: Raw value read from the key-value store

    Returns:
        UTC-aware datetime, or None if the value is missing or unusable
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        # fromisoformat only accepts a "Z" suffix from Python 3.11 on
        if value.endswith(("Z", "z")):
            value = value[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(value))
        except ValueError:
            return None

    return None


def format_timestamp(timestamp: datetime) -> str:
    """Serialize a datetime as a UTC ISO 8601 string."""
    return ensure_utc(timestamp).isoformat()


def is_ttl_valid(
    last_written: datetime, max_age_seconds: Optional[float], now: datetime
) -> bool:
    """Check if a cache entry is still valid based on its age.

    Args:
        last_written: When the entry was last persisted
        max_age_seconds: Maximum age in seconds (None means never expire)
        now: Current time

    Returns:
        True if the entry is at most max_age_seconds old
    """
    if max_age_seconds is None:
        return True

    elapsed = (ensure_utc(now) - ensure_utc(last_written)).total_seconds()
    return elapsed <= max_age_seconds


def get_ttl_remaining(
    last_written: datetime, max_age_seconds: Optional[float], now: datetime
) -> Optional[int]:
    """Get remaining seconds until an entry expires.

    Returns:
        Seconds remaining (never negative), or None if it never expires
    """
    if max_age_seconds is None:
        return None

    elapsed = (ensure_utc(now) - ensure_utc(last_written)).total_seconds()
    return max(0, int(max_age_seconds - elapsed))


def is_server_update_newer(
    server_update: datetime, last_written: datetime, epsilon_seconds: float
) -> bool:
    """Check whether the server changed data after the entry was written.

    Args:
        server_update: Update time asserted by the remote source
        last_written: When the entry was last persisted
        epsilon_seconds: Differences at or below this are ignored

    Returns:
        True if the server update is newer by more than epsilon_seconds
    """
    delta = (ensure_utc(server_update) - ensure_utc(last_written)).total_seconds()
    return delta > epsilon_seconds
