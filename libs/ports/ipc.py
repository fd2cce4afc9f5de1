from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from typing import Any, Protocol, runtime_checkable


class ControlClientPort(ABC):
    """ctl → monitor control requests (REQ/REP client)."""

    @abstractmethod
    def send(self, addr: str, request: Mapping[str, Any]) -> dict: ...


class SnapshotSubPort(ABC):
    """Display consumers subscribe to the snapshot stream (SUB)."""

    @abstractmethod
    def subscribe(self, addr: str) -> None: ...
    @abstractmethod
    def recv(self, timeout_ms: int = 100) -> dict | None: ...


class SnapshotPubPort(ABC):
    """Monitor publishes snapshots on render ticks (PUB)."""

    @abstractmethod
    def publish(self, topic: str, payload: Mapping[str, Any]) -> None: ...

    def close(self) -> None:
        return None


@runtime_checkable
class ControlServerPort(Protocol):
    """Monitor-side REP server: poll once and close."""

    def poll_once(self, handler: Callable[[dict], dict]) -> bool: ...
    def close(self) -> None: ...


__all__ = [
    "ControlClientPort",
    "SnapshotSubPort",
    "SnapshotPubPort",
    "ControlServerPort",
]
