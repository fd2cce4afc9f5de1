from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import stat
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Final

from domain.errors import IntakeError, StartupError

LOG: Final = logging.getLogger("hivewatch.intake")

Submit = Callable[[bytes], Awaitable[None]]
Report = Callable[[str], Awaitable[None]]


class _RecordTooLarge(Exception):
    pass


class UnixHookListener:
    """Accepts agent hook reports on a unix socket.

    One JSON document per connection, read until EOF. Connections beyond
    ``max_connections`` are closed immediately; a connection that does not
    finish within ``read_timeout_s`` is dropped without touching the others.
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        submit: Submit,
        *,
        max_connections: int = 100,
        read_timeout_s: float = 2.0,
        max_record_bytes: int = 65536,
        report: Report | None = None,
    ) -> None:
        self.path = Path(path)
        self._submit = submit
        self._report = report
        self.max_connections = max_connections
        self.read_timeout_s = read_timeout_s
        self.max_record_bytes = max_record_bytes
        self._server: asyncio.AbstractServer | None = None
        self.active = 0
        self.refused = 0
        self.accepted = 0

    async def start(self) -> None:
        self._remove_stale_socket()
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self._server = await asyncio.start_unix_server(self._on_client, path=str(self.path))
            os.chmod(self.path, 0o600)
        except OSError as ex:
            raise StartupError(f"cannot listen on {self.path}: {ex}") from ex
        LOG.info("Listening for hook events on %s", self.path)

    async def close(self) -> None:
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        with contextlib.suppress(FileNotFoundError):
            self.path.unlink()

    def _remove_stale_socket(self) -> None:
        try:
            mode = self.path.lstat().st_mode
        except FileNotFoundError:
            return
        except OSError as ex:
            raise StartupError(f"cannot inspect {self.path}: {ex}") from ex
        if not stat.S_ISSOCK(mode):
            raise StartupError(f"{self.path} exists and is not a socket")
        self.path.unlink()

    async def _on_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if self.active >= self.max_connections:
            self.refused += 1
            LOG.warning("Connection limit (%d) reached; refusing client", self.max_connections)
            writer.close()
            return

        self.active += 1
        self.accepted += 1
        try:
            try:
                raw = await asyncio.wait_for(self._read_all(reader), timeout=self.read_timeout_s)
            except TimeoutError:
                await self._failed(f"hook connection timed out after {self.read_timeout_s}s")
                return
            except _RecordTooLarge:
                LOG.warning("Dropping hook record larger than %d bytes", self.max_record_bytes)
                return
            except ConnectionError as ex:
                await self._failed(f"hook connection failed: {ex}")
                return

            if not raw.strip():
                return
            try:
                await self._submit(raw)
            except IntakeError as ex:
                LOG.warning("Dropping hook record (%s): %s", ex.code, ex.detail[:200])
        finally:
            self.active -= 1
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    async def _read_all(self, reader: asyncio.StreamReader) -> bytes:
        chunks: list[bytes] = []
        size = 0
        while True:
            chunk = await reader.read(4096)
            if not chunk:
                return b"".join(chunks)
            size += len(chunk)
            if size > self.max_record_bytes:
                raise _RecordTooLarge()
            chunks.append(chunk)

    async def _failed(self, message: str) -> None:
        LOG.warning("%s", message)
        if self._report is not None:
            await self._report(message)
