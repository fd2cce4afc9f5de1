from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Final

from ports.time import ClockPort
from pydantic import ValidationError
from shared.contracts.v1.commands import LoopConfig, UserCommand
from shared.contracts.v1.hook import HookEvent

from domain.errors import CommandError, IntakeError, StartupError

from .messages import CommandMsg, HookMsg, KeyMsg, QueueItem, RegisterMsg

LOG: Final = logging.getLogger("hivewatch.intake")


def parse_hook_event(raw: bytes | str) -> HookEvent:
    """Validate one wire record; raises IntakeError with ``bad-json`` or ``invalid-record``."""
    try:
        return HookEvent.model_validate_json(raw)
    except ValidationError as ex:
        errors = ex.errors()
        if errors and errors[0].get("type") == "json_invalid":
            raise IntakeError("bad-json", errors[0].get("msg", "")) from ex
        raise IntakeError("invalid-record", str(ex)) from ex


class EventIntake:
    """Merges every event source into one ordered, bounded queue.

    Producers await ``put`` with a deadline (backpressure); timer ticks never
    block and are dropped when the queue is full. Exactly one consumer reads
    with ``get``.
    """

    def __init__(self, clock: ClockPort, capacity: int = 4096, put_timeout_s: float = 2.0) -> None:
        if capacity < 1:
            raise StartupError(f"queue capacity must be >= 1 (got {capacity})")
        self.clock: Final = clock
        self.capacity = capacity
        self.put_timeout_s = put_timeout_s
        self._queue: asyncio.Queue[QueueItem] = asyncio.Queue(maxsize=capacity)
        self._closed = False
        self.dropped_ticks = 0

    # --- core-exposed operations ----------------------------------------------------

    async def submit(self, raw: bytes | str) -> None:
        event = parse_hook_event(raw)
        await self.push(HookMsg(event, self.clock.now()))

    async def submit_command(self, kind: str, identity: str) -> None:
        try:
            command = UserCommand.model_validate({"kind": kind, "identity": identity})
        except ValidationError as ex:
            raise CommandError("bad-command", f"{kind!r} for {identity!r}") from ex
        try:
            await self.push(CommandMsg(command, self.clock.now()))
        except IntakeError as ex:
            raise CommandError("queue-full", ex.detail) from ex

    async def register_loop_config(self, key: str, config: LoopConfig) -> None:
        await self.push(RegisterMsg(key, config, self.clock.now()))

    def key_pressed(self, key: str, identity: str | None) -> bool:
        return self.push_nowait(KeyMsg(key, identity, self.clock.now()))

    # --- queue plumbing ----------------------------------------------------------

    async def push(self, item: QueueItem) -> None:
        if self._closed:
            raise IntakeError("closed", "intake is shut down")
        try:
            await asyncio.wait_for(self._queue.put(item), timeout=self.put_timeout_s)
        except TimeoutError as ex:
            raise IntakeError("queue-full", f"no room after {self.put_timeout_s}s") from ex

    def push_nowait(self, item: QueueItem) -> bool:
        if self._closed:
            return False
        try:
            self._queue.put_nowait(item)
        except asyncio.QueueFull:
            return False
        return True

    async def get(self) -> QueueItem:
        return await self._queue.get()

    def qsize(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        self._closed = True

    async def ticker(self, period_s: float, make: Callable[[float], QueueItem]) -> None:
        """Feed synthetic ticks into the queue until cancelled."""
        while not self._closed:
            await asyncio.sleep(period_s)
            if not self.push_nowait(make(self.clock.now())):
                self.dropped_ticks += 1
                LOG.debug("Queue full; dropped %s", make.__name__)
