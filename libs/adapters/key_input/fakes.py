from __future__ import annotations

from ports.input import KeyCallback, KeyInputPort


class FakeKeyInputPort(KeyInputPort):
    """Simple pub/sub for key presses."""

    def __init__(self) -> None:
        self._subs: list[KeyCallback] = []

    def subscribe(self, callback: KeyCallback) -> None:
        self._subs.append(callback)

    # Test helper: trigger all subscribers
    def press(self, key: str, identity: str | None = None) -> None:
        for cb in list(self._subs):
            cb(key, identity)
