from __future__ import annotations

from abc import ABC, abstractmethod


class PaneProbePort(ABC):
    """Answers whether an agent's terminal/process handle still exists."""

    @abstractmethod
    def handles(self, identity: str) -> bool:
        """True when this probe knows how to check ``identity``."""
        ...

    @abstractmethod
    def exists(self, identity: str) -> bool:
        """Raises ProbeError when the check itself fails."""
        ...
