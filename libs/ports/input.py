from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

# callback(key, target_identity); target is None when nothing is selected
KeyCallback = Callable[[str, str | None], None]


class KeyInputPort(ABC):
    """Local keyboard events; terminal raw-mode handling lives outside the core."""

    @abstractmethod
    def subscribe(self, callback: KeyCallback) -> None: ...
