from __future__ import annotations

from collections.abc import Mapping
from queue import Empty, SimpleQueue
from typing import Any

from ports.ipc import ControlClientPort, SnapshotPubPort, SnapshotSubPort


class FakeControlClient(ControlClientPort):
    """Records last request per addr and returns a canned ok-dict."""

    def __init__(self) -> None:
        self.sent: dict[str, dict] = {}

    def send(self, addr: str, request: Mapping[str, Any]) -> dict:
        payload = dict(request)
        self.sent[addr] = payload
        return {"ok": True, "data": {"echo": payload}}


class FakeSnapshotPubPort(SnapshotPubPort):
    def __init__(self) -> None:
        self.published: list[tuple[str, dict[str, Any]]] = []

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        self.published.append((topic, dict(payload)))


class FakeSnapshotSubPort(SnapshotSubPort):
    """Local queue-based snapshot channel suitable for tests."""

    def __init__(self) -> None:
        self._subs: set[str] = set()
        self._q: SimpleQueue[dict] = SimpleQueue()

    def subscribe(self, addr: str) -> None:
        self._subs.add(addr)

    def recv(self, timeout_ms: int = 100) -> dict | None:
        try:
            return self._q.get(timeout=timeout_ms / 1000.0)
        except Empty:
            return None

    # Test/helper API: inject a snapshot message
    def inject(self, record: dict) -> None:
        self._q.put(record)
