from __future__ import annotations

import asyncio
import json
import os
import socket
import stat
from pathlib import Path

import pytest
from adapters.hook_socket import UnixHookListener, send_record
from adapters.time import ManualClockPort
from domain.errors import StartupError
from domain.intake import EventIntake, HookMsg

pytestmark = pytest.mark.contract


def _record(kind: str, identity: str = "%1") -> dict:
    return {"event_kind": kind, "identity_hint": identity, "timestamp": 1.0, "project": "demo"}


def test_listener_queues_records_and_drops_garbage(tmp_path: Path):
    path = tmp_path / "hw.sock"

    async def scenario() -> list[HookMsg]:
        intake = EventIntake(ManualClockPort())
        listener = UnixHookListener(path, intake.submit)
        await listener.start()
        try:
            assert stat.S_IMODE(os.stat(path).st_mode) == 0o600
            await asyncio.to_thread(send_record, path, _record("SessionStart"))
            await asyncio.to_thread(_send_raw, path, b"{definitely not json")
            await asyncio.to_thread(send_record, path, _record("Stop"))
            for _ in range(100):
                if intake.qsize() >= 2:
                    break
                await asyncio.sleep(0.01)
            await asyncio.sleep(0.05)
            return [await intake.get() for _ in range(intake.qsize())]
        finally:
            await listener.close()

    items = asyncio.run(scenario())
    assert [m.event.event_kind.value for m in items] == ["SessionStart", "Stop"]
    assert not path.exists()


def _send_raw(path: Path, payload: bytes) -> None:
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as s:
        s.connect(str(path))
        s.sendall(payload)
        s.shutdown(socket.SHUT_WR)


def test_stale_socket_is_replaced(tmp_path: Path):
    path = tmp_path / "hw.sock"

    # a crashed monitor leaves its socket file behind
    leftover = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    leftover.bind(str(path))
    leftover.close()
    assert path.exists()

    async def scenario() -> None:
        listener = UnixHookListener(path, _ignore)
        await listener.start()
        await asyncio.to_thread(send_record, path, _record("Stop"))
        await listener.close()

    asyncio.run(scenario())


def test_non_socket_path_is_a_startup_error(tmp_path: Path):
    path = tmp_path / "hw.sock"
    path.write_text("not a socket")

    async def scenario() -> None:
        with pytest.raises(StartupError):
            await UnixHookListener(path, _ignore).start()

    asyncio.run(scenario())
    assert path.read_text() == "not a socket"


async def _ignore(raw: bytes) -> None:
    return None


def test_slow_client_times_out_and_is_reported(tmp_path: Path):
    path = tmp_path / "hw.sock"
    reports: list[str] = []

    async def report(message: str) -> None:
        reports.append(message)

    async def scenario() -> None:
        received: list[bytes] = []

        async def submit(raw: bytes) -> None:
            received.append(raw)

        listener = UnixHookListener(path, submit, read_timeout_s=0.05, report=report)
        await listener.start()
        try:
            reader, writer = await asyncio.open_unix_connection(str(path))
            writer.write(b'{"event_kind": "Stop"')  # never finishes
            await writer.drain()
            await asyncio.sleep(0.2)
            writer.close()

            # a well-behaved client is unaffected
            await asyncio.to_thread(send_record, path, _record("Stop", "%2"))
            await asyncio.sleep(0.05)
            assert len(received) == 1
            assert json.loads(received[0])["identity_hint"] == "%2"
        finally:
            await listener.close()

    asyncio.run(scenario())
    assert reports and "timed out" in reports[0]


def test_connection_cap_refuses_extra_clients(tmp_path: Path):
    path = tmp_path / "hw.sock"

    async def scenario() -> UnixHookListener:
        listener = UnixHookListener(path, _ignore, max_connections=1, read_timeout_s=1.0)
        await listener.start()
        try:
            _, hold = await asyncio.open_unix_connection(str(path))
            await asyncio.sleep(0.05)
            assert listener.active == 1

            reader, extra = await asyncio.open_unix_connection(str(path))
            # refused connections are closed without reading
            assert await asyncio.wait_for(reader.read(), timeout=1.0) == b""
            extra.close()
            hold.close()
            await asyncio.sleep(0.05)
        finally:
            await listener.close()
        return listener

    listener = asyncio.run(scenario())
    assert listener.refused == 1
    assert listener.accepted == 1


def test_oversized_record_is_dropped(tmp_path: Path):
    path = tmp_path / "hw.sock"
    received: list[bytes] = []

    async def submit(raw: bytes) -> None:
        received.append(raw)

    async def scenario() -> None:
        listener = UnixHookListener(path, submit, max_record_bytes=64)
        await listener.start()
        try:
            big = _record("Stop") | {"reason": "x" * 500}
            await asyncio.to_thread(send_record, path, big)
            await asyncio.sleep(0.05)
        finally:
            await listener.close()

    asyncio.run(scenario())
    assert received == []


def test_send_record_fails_when_nobody_listens(tmp_path: Path):
    with pytest.raises(OSError):
        send_record(tmp_path / "missing.sock", _record("Stop"), timeout_s=0.1)
