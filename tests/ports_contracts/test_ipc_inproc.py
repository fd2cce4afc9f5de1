from __future__ import annotations

import threading

from adapters.ipc_inproc import (
    InprocControlClient,
    InprocControlServerPort,
    InprocSnapshotPubPort,
    InprocSnapshotSubPort,
)
from ports.ipc import ControlClientPort, ControlServerPort, SnapshotPubPort, SnapshotSubPort


def _handler(request: dict) -> dict:
    if request.get("type") == "snapshot":
        return {"version": 7}
    raise ValueError(f"unsupported {request.get('type')!r}")


def _serve(server: InprocControlServerPort, stop: threading.Event) -> None:
    while not stop.is_set():
        server.poll_once(_handler)


def test_inproc_control_roundtrip():
    server: ControlServerPort = InprocControlServerPort.create()
    client: ControlClientPort = InprocControlClient.create(server)
    stop = threading.Event()
    th = threading.Thread(target=_serve, args=(server, stop), daemon=True)
    th.start()
    try:
        ok = client.send("inproc://control", {"type": "snapshot"})
        assert ok["ok"] is True
        assert ok["data"] == {"version": 7}

        bad = client.send("inproc://control", {"type": "reboot"})
        assert bad["ok"] is False
        assert bad["error"]["code"] == "bad-command"
        assert bad["correlates_to"]
    finally:
        stop.set()
        th.join(timeout=1.0)


def test_inproc_client_times_out_without_a_server_loop():
    server = InprocControlServerPort.create()
    client = InprocControlClient(server, timeout_s=0.05)
    resp = client.send("inproc://control", {"type": "snapshot"})
    assert resp["ok"] is False
    assert resp["error"]["code"] == "timeout"


def test_inproc_closed_server_answers_immediately():
    server = InprocControlServerPort.create()
    server.close()
    resp = InprocControlClient(server).send("inproc://control", {"type": "snapshot"})
    assert resp["error"]["code"] == "internal"


def test_inproc_snapshot_stream():
    pub: SnapshotPubPort = InprocSnapshotPubPort.create()
    sub: SnapshotSubPort = InprocSnapshotSubPort.create(pub)
    sub.subscribe("snapshot")

    pub.publish("snapshot", {"version": 1})
    pub.publish("other", {"ignored": True})
    assert sub.recv(timeout_ms=50) == {"version": 1}
    assert sub.recv(timeout_ms=1) is None
    assert pub.latest["other"] == {"ignored": True}
