from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Final, Literal

from domain.errors import IntakeError, SinkError
from domain.intake import EventIntake, NoticeMsg, SpawnedMsg
from ports.sink import CommandSinkPort, SinkCommand, SpawnWorker

LOG: Final = logging.getLogger("hivewatch.monitor")


def _describe(command: SinkCommand) -> str:
    if isinstance(command, SpawnWorker):
        return f"spawn for {command.task_id}"
    return f"{type(command).__name__} to {command.identity}"


def _target(command: SinkCommand) -> str:
    return command.parent if isinstance(command, SpawnWorker) else command.identity


class CommandDispatcher:
    """Runs sink commands off the serial consumer, one at a time, in order.

    Outcomes come back through the intake queue: failures as notices,
    successful spawns as ``SpawnedMsg``. Failed commands are not retried.
    At most ``capacity`` commands wait at once; ``submit`` hands back the
    overflow instead of growing the backlog.
    """

    def __init__(self, sink: CommandSinkPort, intake: EventIntake, capacity: int = 256) -> None:
        self.sink: Final = sink
        self.intake: Final = intake
        self.capacity: Final = capacity
        self._pending: asyncio.Queue[SinkCommand] | None = None
        self.executed = 0
        self.failed = 0
        self.dropped = 0

    def _queue(self) -> asyncio.Queue[SinkCommand]:
        if self._pending is None:
            self._pending = asyncio.Queue(maxsize=self.capacity)
        return self._pending

    def submit(self, commands: Sequence[SinkCommand]) -> list[SinkCommand]:
        """Called from the serial consumer; never blocks. Returns the commands that did not fit."""
        q = self._queue()
        rejected: list[SinkCommand] = []
        for command in commands:
            try:
                q.put_nowait(command)
            except asyncio.QueueFull:
                rejected.append(command)
        if rejected:
            self.dropped += len(rejected)
            LOG.warning(
                "Dispatcher full (%d waiting); dropped %s",
                q.qsize(),
                ", ".join(_describe(c) for c in rejected),
            )
        return rejected

    async def run(self) -> None:
        q = self._queue()
        while True:
            command = await q.get()
            try:
                await self.execute(command)
            finally:
                q.task_done()

    async def drain(self) -> None:
        await self._queue().join()

    async def execute(self, command: SinkCommand) -> None:
        if command.delay_s > 0:
            await asyncio.sleep(command.delay_s)
        try:
            result = await asyncio.to_thread(self.sink.execute, command)
        except SinkError as ex:
            self.failed += 1
            LOG.warning("Command failed (%s): %s", _describe(command), ex)
            await self._report(f"{_describe(command)} failed: {ex}", _target(command))
            return
        except Exception as ex:
            self.failed += 1
            LOG.exception("Command sink crashed on %s", _describe(command))
            await self._report(f"{_describe(command)} crashed: {ex!r}", _target(command), "error")
            return

        self.executed += 1
        if isinstance(command, SpawnWorker) and result:
            await self._push(SpawnedMsg(command.spawn_key, result, self.intake.clock.now()))

    async def _report(
        self,
        message: str,
        identity: str,
        severity: Literal["info", "warning", "error"] = "warning",
    ) -> None:
        await self._push(NoticeMsg(message, identity, self.intake.clock.now(), severity))

    async def _push(self, item: NoticeMsg | SpawnedMsg) -> None:
        try:
            await self.intake.push(item)
        except IntakeError as ex:
            LOG.error("Could not queue command outcome (%s): %s", ex.code, item)
