from __future__ import annotations

from abc import ABC, abstractmethod


class ClockPort(ABC):
    """Monotonic seconds; only differences are meaningful."""

    @abstractmethod
    def now(self) -> float: ...
