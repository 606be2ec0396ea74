"""
Core Utility Functions.

Common utilities used across the application.
"""

from datetime import datetime, timezone
from typing import Any, Optional


# =============================================================================
# Time Helpers
# =============================================================================

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current time as a tz-aware UTC datetime (the default clock)."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Make a datetime tz-aware.

    Naive datetimes are assumed to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string, epoch milliseconds or datetime.

    Returns None for missing or unparsable values.

    Examples:
        >>> parse_timestamp("2024-01-01T00:00:00Z").year
        2024
        >>> parse_timestamp(None) is None
        True
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def age_ms(now: datetime, then: datetime) -> float:
    """Milliseconds elapsed from ``then`` to ``now`` (negative if in the future)."""
    return (now - then).total_seconds() * 1000.0


# =============================================================================
# Dict Helpers
# =============================================================================

def first_present(data: dict, *keys: str, default: Any = None) -> Any:
    """Return the value of the first key that is present and not empty."""
    for key in keys:
        value = data.get(key)
        if value not in (None, ""):
            return value
    return default
