from __future__ import annotations

import uuid
from collections.abc import Callable, Mapping
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout
from queue import Empty, SimpleQueue
from typing import Any

from ports.ipc import ControlClientPort, SnapshotPubPort, SnapshotSubPort
from shared.contracts.v1.ipc_wire import ErrorInfo, ResponseEnvelope

_Pending = tuple[str, dict[str, Any], "Future[dict[str, Any]]"]


def _error(msg_id: str, code: str, detail: str) -> dict[str, Any]:
    return ResponseEnvelope(
        ok=False, correlates_to=msg_id, error=ErrorInfo(code=code, detail=detail)
    ).model_dump(mode="json")


class InprocControlServerPort:
    """Same-process REP stand-in; requests wait in a queue until polled."""

    @classmethod
    def create(cls) -> InprocControlServerPort:
        return cls()

    def __init__(self) -> None:
        self._requests: SimpleQueue[_Pending] = SimpleQueue()
        self.closed = False

    def poll_once(self, handler: Callable[[dict], dict], timeout_ms: int = 10) -> bool:
        try:
            msg_id, request, reply = self._requests.get(timeout=timeout_ms / 1000.0)
        except Empty:
            return False
        try:
            result = handler(request)
        except ValueError as ex:
            reply.set_result(_error(msg_id, "bad-command", str(ex)))
        except Exception as ex:
            reply.set_result(_error(msg_id, "internal", repr(ex)))
        else:
            reply.set_result(
                ResponseEnvelope(ok=True, correlates_to=msg_id, data=result).model_dump(mode="json")
            )
        return True

    def enqueue(self, request: Mapping[str, Any]) -> tuple[str, Future[dict[str, Any]]]:
        msg_id = str(uuid.uuid4())
        reply: Future[dict[str, Any]] = Future()
        if self.closed:
            reply.set_result(_error(msg_id, "internal", "server closed"))
        else:
            self._requests.put((msg_id, dict(request), reply))
        return msg_id, reply

    def close(self) -> None:
        self.closed = True


class InprocControlClient(ControlClientPort):
    """Talks to an ``InprocControlServerPort`` in the same process; ``addr`` is ignored."""

    @classmethod
    def create(cls, server: InprocControlServerPort) -> InprocControlClient:
        return cls(server)

    def __init__(self, server: InprocControlServerPort, timeout_s: float = 1.0) -> None:
        self.server = server
        self.timeout_s = timeout_s

    def send(self, addr: str, request: Mapping[str, Any]) -> dict[str, Any]:
        msg_id, reply = self.server.enqueue(request)
        try:
            return reply.result(timeout=self.timeout_s)
        except FutureTimeout:
            return _error(msg_id, "timeout", "no reply from in-proc server")


class InprocSnapshotPubPort(SnapshotPubPort):
    """Keeps the latest snapshot per topic and fans out to attached subscribers."""

    @classmethod
    def create(cls) -> InprocSnapshotPubPort:
        return cls()

    def __init__(self) -> None:
        self.latest: dict[str, dict[str, Any]] = {}
        self._subscribers: list[InprocSnapshotSubPort] = []

    def attach(self, sub: InprocSnapshotSubPort) -> None:
        self._subscribers.append(sub)

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        record = dict(payload)
        self.latest[topic] = record
        for sub in self._subscribers:
            sub.deliver(topic, record)


class InprocSnapshotSubPort(SnapshotSubPort):
    """Local queue-based snapshot channel."""

    @classmethod
    def create(cls, pub: InprocSnapshotPubPort | None = None) -> InprocSnapshotSubPort:
        sub = cls()
        if pub is not None:
            pub.attach(sub)
        return sub

    def __init__(self) -> None:
        self._topics: set[str] = set()
        self._q: SimpleQueue[dict] = SimpleQueue()

    def subscribe(self, addr: str) -> None:
        # addr doubles as the topic filter; "" takes everything
        self._topics.add(addr)

    def deliver(self, topic: str, record: dict) -> None:
        if not self._topics or "" in self._topics or topic in self._topics:
            self._q.put(record)

    def recv(self, timeout_ms: int = 100) -> dict | None:
        try:
            return self._q.get(timeout=timeout_ms / 1000.0)
        except Empty:
            return None
