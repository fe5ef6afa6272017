"""
Injectable clock.

Quota decisions take `now` from a Clock rather than reading wall-clock time
at call sites, so tests can cross UTC day boundaries deterministically.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


def to_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime. Naive values are treated as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class Clock(Protocol):
    def now(self) -> datetime:
        ...


class SystemClock:
    """Wall-clock UTC time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Manually advanced clock for tests."""

    def __init__(self, start: datetime):
        self._now = to_utc(start)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = to_utc(value)

    def advance(self, **kwargs) -> datetime:
        self._now = self._now + timedelta(**kwargs)
        return self._now
