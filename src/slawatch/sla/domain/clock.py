"""
Clock Source
============

Supplies the current instant. Everything that needs "now" takes a Clock so
deadline maths can be driven deterministically in tests.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional


class Clock(ABC):
    """Source of the current UTC instant."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware instant."""


class SystemClock(Clock):
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock(Clock):
    """Settable clock, for tests and replaying a day of ticks."""

    def __init__(self, start: Optional[datetime] = None):
        start = start or datetime.now(timezone.utc)
        if start.tzinfo is None:
            raise ValueError("ManualClock requires a timezone-aware datetime")
        self._now = start

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        if value.tzinfo is None:
            raise ValueError("ManualClock requires a timezone-aware datetime")
        self._now = value

    def advance(self, **kwargs: float) -> datetime:
        """Move forward by timedelta keyword arguments, e.g. advance(minutes=5)."""
        self._now = self._now + timedelta(**kwargs)
        return self._now
