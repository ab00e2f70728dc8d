"""
Datetime utility functions and injectable time sources.

Core engine functions never read the wall clock themselves. Callers either
pass ``now`` explicitly or hold a ``Clock`` and call ``clock.now()`` once per
request, which keeps every transition deterministic under test.
"""
from datetime import datetime, timedelta, timezone
from typing import Optional, Protocol


def utc_now() -> datetime:
    """
    Return the current datetime in UTC timezone.

    Returns:
        A timezone-aware datetime object representing the current time in UTC.
    """
    return datetime.now(timezone.utc)


def ensure_timezone_aware(dt: Optional[datetime]) -> datetime:
    """
    Ensure a datetime object is timezone-aware (UTC).
    SQLite may return timezone-naive datetimes even when stored as timezone-aware.

    Args:
        dt: The datetime to ensure is timezone-aware

    Returns:
        A timezone-aware datetime object in UTC

    Raises:
        ValueError: If dt is None
    """
    if dt is None:
        raise ValueError("datetime cannot be None")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def whole_seconds_between(start: datetime, end: datetime) -> int:
    """Return elapsed whole seconds from start to end, truncated, never negative."""
    elapsed = (ensure_timezone_aware(end) - ensure_timezone_aware(start)).total_seconds()
    if elapsed <= 0:
        return 0
    return int(elapsed)


class Clock(Protocol):
    """Source of the current time."""

    def now(self) -> datetime:
        """Return the current timezone-aware datetime."""
        ...


class SystemClock:
    """Clock backed by the system wall clock (UTC)."""

    def now(self) -> datetime:
        return utc_now()


class FixedClock:
    """
    Manually driven clock for tests and replays.

    Example:
        >>> clock = FixedClock(datetime(2024, 1, 1, 9, 0, tzinfo=timezone.utc))
        >>> clock.advance(minutes=30)
        >>> clock.now().minute
        30
    """

    def __init__(self, current: datetime):
        self._current = ensure_timezone_aware(current)

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = ensure_timezone_aware(current)

    def advance(self, **delta: float) -> None:
        """Move the clock forward by a ``timedelta(**delta)``."""
        self._current = self._current + timedelta(**delta)


_default_clock: Clock = SystemClock()


def get_clock() -> Clock:
    """Return the process-wide clock (overridable as a FastAPI dependency)."""
    return _default_clock
