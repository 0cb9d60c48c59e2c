"""
Clock -- injectable time source.

Responsibility:
    Services that stamp records (clearing timestamps, yield cache times)
    receive a Clock instead of calling ``datetime.now()`` directly.

Architecture position:
    Kernel > Domain. Engines never take a Clock: replay output is a pure
    function of its input events.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current time, timezone-aware."""

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    """Wall clock used by the application."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock frozen at ``fixed_time`` until advanced.

    Tests inject it so stamped values (cleared_at, yield_computed_at) are
    exact.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._now = fixed_time or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self._now

    def advance(self, seconds: int = 1) -> datetime:
        self._now += timedelta(seconds=seconds)
        return self._now
