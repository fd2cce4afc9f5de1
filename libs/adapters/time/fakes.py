from __future__ import annotations

import time

from ports.time import ClockPort


class MonotonicClockPort(ClockPort):
    """Wall-clock using time.monotonic; immune to system clock changes."""

    def now(self) -> float:
        return time.monotonic()


class ManualClockPort(ClockPort):
    """Test clock that only moves when told to."""

    def __init__(self, start: float = 1000.0) -> None:
        self._now = start

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        self._now += seconds
        return self._now
