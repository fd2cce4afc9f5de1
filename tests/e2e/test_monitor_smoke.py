from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from pathlib import Path

from adapters.hook_socket import send_record
from adapters.ipc_inproc import InprocControlClient, InprocSnapshotPubPort
from adapters.progress_fs import InMemoryProgressStore
from adapters.tmux import FakePaneProbe, RecordingCommandSink

from apps.monitor.compose import MonitorApp
from apps.monitor.settings import MonitorSettings

CONTROL = "inproc://control"


def _settings(tmp_path: Path) -> MonitorSettings:
    return MonitorSettings(
        socket_path=str(tmp_path / "hw.sock"),
        ipc_impl="inproc",
        sink_impl="fake",
        render_tick_hz=50.0,
        reconcile_interval_s=0.05,
    )


def _hook(kind: str, identity: str = "%1", **extra) -> dict:
    return {
        "event_kind": kind,
        "identity_hint": identity,
        "timestamp": time.time(),
        "project": "parser",
        **extra,
    }


async def _eventually(check: Callable[[], bool], timeout_s: float = 2.0) -> None:
    deadline = time.monotonic() + timeout_s
    while not check():
        assert time.monotonic() < deadline, "condition not met in time"
        await asyncio.sleep(0.01)


def _agent(snapshot: dict, identity: str) -> dict | None:
    return next((a for a in snapshot.get("agents", []) if a["identity"] == identity), None)


def test_loop_agent_end_to_end(tmp_path: Path):
    sink = RecordingCommandSink()
    app = MonitorApp(
        _settings(tmp_path),
        sink=sink,
        probe=FakePaneProbe(alive={"%1"}),
        progress=InMemoryProgressStore(),
    )
    client = InprocControlClient(app.control, timeout_s=2.0)

    async def ask(request: dict) -> dict:
        resp = await asyncio.to_thread(client.send, CONTROL, request)
        assert resp["ok"] is True, resp
        return resp["data"]

    async def hook(kind: str, **extra) -> None:
        await asyncio.to_thread(send_record, app.listener.path, _hook(kind, **extra))

    async def scenario() -> dict:
        await app.start()
        try:
            queued = await ask(
                {"type": "register", "key": "%1", "config": {"max_iterations": 3}}
            )
            assert queued == {"queued": True, "key": "%1"}

            await hook("SessionStart")
            await hook("PreToolUse", tool_name="Bash", tool_use_id="t1")

            async def agent_when(key: str, value: object) -> dict:
                deadline = time.monotonic() + 2.0
                while True:
                    state = await ask({"type": "snapshot"})
                    agent = _agent(state, "%1") or {}
                    if agent.get(key) == value:
                        return agent
                    assert time.monotonic() < deadline, f"{key} never became {value!r}"
                    await asyncio.sleep(0.01)

            await agent_when("status", "working")

            await hook("PostToolUse", tool_name="Bash", tool_use_id="t1")
            await hook("Stop", reason="")
            await _eventually(lambda: ("%1", "continue", True) in sink.inputs)

            agent = await agent_when("loop_iteration", 1)
            assert agent["status"] == "idle"
            assert agent["loop_state"] == "active"
            assert agent["tool_calls"] == 1

            # the operator cancels through the control channel
            assert await ask({"type": "command", "kind": "cancel", "identity": "%1"}) == {
                "queued": True,
                "kind": "cancel",
                "identity": "%1",
            }
            await agent_when("loop_state", "cancelled")

            pub = app.snapshot_pub
            assert isinstance(pub, InprocSnapshotPubPort)
            await _eventually(
                lambda: (_agent(pub.latest.get("snapshot", {}), "%1") or {}).get("loop_state")
                == "cancelled"
            )
            return await ask({"type": "snapshot"})
        finally:
            await app.aclose()

    final = asyncio.run(scenario())
    assert final["counts"]["idle"] == 1
    assert not app.listener.path.exists()


def test_unknown_command_is_rejected_over_control(tmp_path: Path):
    app = MonitorApp(_settings(tmp_path), progress=InMemoryProgressStore())
    client = InprocControlClient(app.control, timeout_s=2.0)

    async def scenario() -> dict:
        await app.start()
        try:
            return await asyncio.to_thread(
                client.send, CONTROL, {"type": "command", "kind": "reboot", "identity": "%1"}
            )
        finally:
            await app.aclose()

    resp = asyncio.run(scenario())
    assert resp["ok"] is False
    assert resp["error"]["code"] == "bad-command"


def test_vanished_pane_is_orphaned(tmp_path: Path):
    probe = FakePaneProbe(alive=set())
    app = MonitorApp(_settings(tmp_path), probe=probe, progress=InMemoryProgressStore())

    async def scenario() -> None:
        await app.start()
        try:
            await asyncio.to_thread(send_record, app.listener.path, _hook("SessionStart", "%5"))
            await _eventually(lambda: "%5" in probe.checked)
            await _eventually(lambda: getattr(app.store.get("%5"), "status", None) == "orphaned")
        finally:
            await app.aclose()

    asyncio.run(scenario())
