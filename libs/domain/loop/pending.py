from __future__ import annotations

import logging
from typing import Final

from shared.contracts.v1.commands import LoopConfig

LOG: Final = logging.getLogger("hivewatch.loop")


class PendingConfigs:
    """Loop configs waiting for their agent's first report.

    Keys are either a real identity or a provisional spawn key. Only the serial
    consumer touches this table, so a claim can never be contested.
    """

    def __init__(self) -> None:
        self._entries: dict[str, tuple[LoopConfig, float]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def register(self, key: str, config: LoopConfig, now: float) -> None:
        if key in self._entries:
            LOG.info("Replacing pending loop config for %s", key)
        self._entries[key] = (config, now)

    def alias(self, spawn_key: str, identity: str) -> bool:
        """Re-key an unclaimed entry once the spawned session's identity is known."""
        entry = self._entries.pop(spawn_key, None)
        if entry is None:
            return False
        self._entries.setdefault(identity, entry)
        return True

    def claim(self, identity: str, spawn_key: str | None = None) -> LoopConfig | None:
        entry = self._entries.pop(identity, None)
        if entry is None and spawn_key:
            entry = self._entries.pop(spawn_key, None)
        elif spawn_key:
            self._entries.pop(spawn_key, None)
        return entry[0] if entry else None

    def expire(self, now: float, timeout_s: float) -> list[str]:
        stale = [k for k, (_, at) in self._entries.items() if now - at > timeout_s]
        for k in stale:
            del self._entries[k]
            LOG.info("Dropping unclaimed loop config %s after %.0fs", k, timeout_s)
        return stale
