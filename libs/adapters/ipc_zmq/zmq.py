import json
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, cast

import zmq
from ports.ipc import ControlClientPort, SnapshotPubPort, SnapshotSubPort
from shared.contracts.v1.ipc_wire import (
    SCHEMA_V1,
    ControlEnvelope,
    ErrorInfo,
    ResponseEnvelope,
    SnapshotEnvelope,
)

# --------- Common helpers ---------


def _new_ctx() -> zmq.Context:
    # Using the global instance avoids thread-happy leaks and is cheap.
    return zmq.Context.instance()


def _set_common(sock: zmq.Socket, rcv_ms: int = 500, snd_ms: int = 500) -> None:
    sock.setsockopt(zmq.LINGER, 0)
    sock.setsockopt(zmq.RCVTIMEO, rcv_ms)
    sock.setsockopt(zmq.SNDTIMEO, snd_ms)


def _error(msg_id: str, code: str, detail: str) -> dict[str, Any]:
    return ResponseEnvelope(
        ok=False, correlates_to=msg_id, error=ErrorInfo(code=code, detail=detail)
    ).model_dump(mode="json")


# --------- Control channel (REQ client + REP server) ---------


class ZmqControlClient(ControlClientPort):
    """
    ctl-side REQ client for control requests.
    The monitor-side REP server is provided via bind_rep(...).
    """

    def __init__(self, rcv_ms: int = 1000) -> None:
        self._ctx = _new_ctx()
        self._rcv_ms = rcv_ms
        self._req_cache: dict[str, zmq.Socket] = {}

    @classmethod
    def bind_rep(cls, addr: str) -> "ZmqControlServer":
        return ZmqControlServer(addr=addr)

    def _get_req(self, addr: str) -> zmq.Socket:
        s = self._req_cache.get(addr)
        if s is None:
            s = self._ctx.socket(zmq.REQ)
            _set_common(s, rcv_ms=self._rcv_ms)
            s.connect(addr)
            self._req_cache[addr] = s
        return s

    def _drop(self, addr: str) -> None:
        s = self._req_cache.pop(addr, None)
        if s is not None:
            s.close(0)

    def send(self, addr: str, request: Mapping[str, Any]) -> dict[str, Any]:
        """
        Sends a ControlEnvelope and expects a ResponseEnvelope-like dict back.
        Retries once on timeout with a fresh socket (REQ is stuck after a lost reply).
        """
        msg_id = str(uuid.uuid4())
        payload = ControlEnvelope(msg_id=msg_id, request=dict(request)).model_dump(mode="json")

        for attempt in (1, 2):
            s = self._get_req(addr)
            try:
                s.send_json(payload)
                return cast(dict[str, Any], s.recv_json())
            except zmq.error.Again:
                self._drop(addr)
                if attempt == 2:
                    return _error(msg_id, "timeout", "REQ timeout")
            except zmq.error.ZMQError as ex:
                self._drop(addr)
                return _error(msg_id, "internal", repr(ex))
        # Should not reach.
        return _error(msg_id, "internal", "unreachable")


@dataclass
class ZmqControlServer:
    """
    Monitor-side REP server. Call `poll_once(handler)` from a dedicated thread;
    handler(request_dict) -> data dict, raising ValueError for bad requests.
    """

    addr: str

    def __post_init__(self) -> None:
        self._ctx = _new_ctx()
        self._sock = self._ctx.socket(zmq.REP)
        _set_common(self._sock)
        self._sock.bind(self.addr)

    def close(self) -> None:
        self._sock.close(0)

    def poll_once(self, handler: Callable[[dict], dict], timeout_ms: int = 10) -> bool:
        """
        Poll for one request; if present, answer it.
        Returns True if a message was processed, False on idle.
        """
        try:
            if not self._sock.poll(timeout=timeout_ms):
                return False

            try:
                req = self._sock.recv_json()
            except ValueError:
                self._sock.send_json(_error("<unknown>", "bad-json", "Invalid JSON"))
                return True

            if not isinstance(req, dict) or req.get("schema_version") != SCHEMA_V1:
                msg_id = req.get("msg_id", "<unknown>") if isinstance(req, dict) else "<unknown>"
                self._sock.send_json(_error(msg_id, "api-mismatch", "schema_version != 1"))
                return True

            msg_id = str(req.get("msg_id", "<unknown>"))
            try:
                result = handler(req.get("request") or {})
            except ValueError as ex:
                self._sock.send_json(_error(msg_id, "bad-command", str(ex)))
                return True
            except Exception as ex:
                self._sock.send_json(_error(msg_id, "internal", repr(ex)))
                return True

            self._sock.send_json(
                ResponseEnvelope(ok=True, correlates_to=msg_id, data=result).model_dump(
                    mode="json"
                )
            )
            return True

        except zmq.error.Again:
            return False


# --------- Snapshot stream (PUB/SUB) ---------


class ZmqSnapshotPubPort(SnapshotPubPort):
    def __init__(self, addr: str) -> None:
        self._ctx = _new_ctx()
        self._pub = self._ctx.socket(zmq.PUB)
        _set_common(self._pub)
        # A slow display must not hold snapshots back; old ones are worthless.
        self._pub.setsockopt(zmq.SNDHWM, 4)
        self._pub.bind(addr)

    @classmethod
    def bind_pub(cls, addr: str) -> "ZmqSnapshotPubPort":
        return cls(addr)

    def publish(self, topic: str, payload: Mapping[str, Any]) -> None:
        env = SnapshotEnvelope(msg_id=str(uuid.uuid4()), topic=topic, data=dict(payload))
        try:
            self._pub.send_multipart(
                [
                    topic.encode("utf-8"),
                    json.dumps(env.model_dump(mode="json")).encode("utf-8"),
                ],
                flags=zmq.NOBLOCK,
            )
        except zmq.error.Again:
            pass  # no room at the HWM; the next render tick carries a newer snapshot

    def close(self) -> None:
        self._pub.close(0)


class ZmqSnapshotSubPort(SnapshotSubPort):
    def __init__(self) -> None:
        self._ctx = _new_ctx()
        self._sub = self._ctx.socket(zmq.SUB)
        _set_common(self._sub)
        # Allow all topics by default
        self._sub.setsockopt(zmq.SUBSCRIBE, b"")
        # Prevent unbounded growth
        self._sub.setsockopt(zmq.RCVHWM, 100)

    def subscribe(self, addr: str) -> None:
        self._sub.connect(addr)

    def recv(self, timeout_ms: int = 100) -> dict[str, Any] | None:
        if self._sub.poll(timeout=timeout_ms):
            topic, data = self._sub.recv_multipart()
            try:
                decoded = json.loads(data.decode("utf-8"))
            except ValueError:
                return {"topic": topic.decode("utf-8"), "error": {"code": "bad-json"}}
            return {
                "topic": topic.decode("utf-8"),
                "data": decoded.get("data", {}),
                "envelope": decoded,
            }
        return None

    def close(self) -> None:
        self._sub.close(0)
