"""
Clock abstraction used to stamp envelopes

Injecting the clock keeps wrapping deterministic under test: a FixedClock
produces identical occurred_at values on every run.
"""

from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Protocol for time sources"""

    def now(self) -> datetime:
        """Return the current UTC datetime"""
        ...


class SystemClock:
    """Wall-clock time in UTC"""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """
    Manually driven clock for deterministic tests

    Time only moves when advance() or set() is called.
    """

    def __init__(self, start: datetime | None = None) -> None:
        self._now = start or datetime(2025, 1, 1, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = moment

    def advance(self, **delta: float) -> datetime:
        """Move forward by a timedelta expressed as keyword arguments (seconds=5, days=1)"""
        self._now += timedelta(**delta)
        return self._now


default_clock: Clock = SystemClock()
