from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import Final, Literal

from ports.sink import SendInput, SendKeys, SinkCommand, SpawnWorker
from shared.contracts.v1.commands import CommandKind, UserCommand
from shared.contracts.v1.hook import EventKind
from shared.contracts.v1.snapshot import Notice, Snapshot

from domain.agent.store import AgentStore
from domain.intake.messages import (
    CommandMsg,
    HookMsg,
    KeyMsg,
    LogicTick,
    NoticeMsg,
    QueueItem,
    ReconcileMsg,
    RegisterMsg,
    RenderTick,
    SpawnedMsg,
)
from domain.loop.orchestrator import LoopOrchestrator

LOG: Final = logging.getLogger("hivewatch.engine")

KEY_BINDINGS: Final[Mapping[str, CommandKind]] = {
    "y": "approve",
    "n": "reject",
    "X": "kill",
    "c": "cancel",
    "R": "restart",
}

Dispatch = Callable[[Sequence[SinkCommand]], Sequence[SinkCommand] | None]
Publish = Callable[[Snapshot], None]


class MonitorEngine:
    """The one serial consumer: applies each queued message in order.

    A failure while handling one message is logged and isolated; the next
    message is processed normally.
    """

    def __init__(
        self,
        store: AgentStore,
        orchestrator: LoopOrchestrator,
        *,
        dispatch: Dispatch,
        publish: Publish | None = None,
        key_bindings: Mapping[str, CommandKind] = KEY_BINDINGS,
    ) -> None:
        self.store: Final = store
        self.orchestrator: Final = orchestrator
        self._submit = dispatch
        self._publish = publish
        self._bindings = dict(key_bindings)
        self._published_version = -1
        self.handled = 0

    def handle(self, item: QueueItem) -> None:
        try:
            self._handle(item)
        except Exception:
            LOG.exception("Failed to handle %s; continuing", type(item).__name__)
        finally:
            self.handled += 1

    def _handle(self, item: QueueItem) -> None:
        if isinstance(item, HookMsg):
            self._on_hook(item)
        elif isinstance(item, LogicTick):
            self.store.tick(item.now)
        elif isinstance(item, RenderTick):
            self._on_render()
        elif isinstance(item, CommandMsg):
            self._on_command(item.command, item.received_at)
        elif isinstance(item, KeyMsg):
            self._on_key(item)
        elif isinstance(item, RegisterMsg):
            self._on_register(item)
        elif isinstance(item, SpawnedMsg):
            self._on_spawned(item)
        elif isinstance(item, ReconcileMsg):
            if not item.alive:
                self.store.mark_orphaned(item.identity)
        elif isinstance(item, NoticeMsg):
            self.store.note(
                Notice(
                    at=item.received_at,
                    message=item.message,
                    identity=item.identity,
                    severity=item.severity,
                )
            )
        else:
            LOG.warning("Unhandled queue item %r", item)

    # --- handlers -----------------------------------------------------------------

    def _on_hook(self, msg: HookMsg) -> None:
        event = msg.event
        self.store.apply(event, msg.received_at)
        if event.event_kind is not EventKind.STOP:
            return
        view = self.store.loop_view(event.identity_hint)
        if view is None:
            return
        try:
            outcome = self.orchestrator.on_stop(view)
        except Exception as ex:
            LOG.exception("Loop evaluation failed for %s", view.identity)
            self._warn(msg.received_at, view.identity, f"loop evaluation failed: {ex!r}", "error")
            return
        if outcome is None:
            return
        self.store.apply_loop_update(outcome.update)
        for problem in outcome.problems:
            self._warn(msg.received_at, view.identity, problem)
        for key, config in outcome.pending:
            self.store.pending.register(key, config, msg.received_at)
        if outcome.commands:
            self._dispatch(outcome.commands, msg.received_at)

    def _on_command(self, command: UserCommand, received_at: float) -> None:
        identity = command.identity
        view = self.store.loop_view(identity)
        if view is None:
            LOG.warning("%s for unknown agent %s ignored", command.kind, identity)
            self.store.note(
                Notice(
                    at=received_at,
                    message=f"{command.kind}: no such agent {identity}",
                    severity="info",
                )
            )
            return

        if command.kind == "cancel":
            update = self.orchestrator.cancel(view)
            if update is not None:
                self.store.apply_loop_update(update)
        elif command.kind == "restart":
            update = self.orchestrator.restart(view)
            if update is not None:
                self.store.apply_loop_update(update)
        elif command.kind == "approve":
            self._dispatch([SendInput(identity, "y")], received_at)
        elif command.kind == "reject":
            self._dispatch([SendInput(identity, "n")], received_at)
        elif command.kind == "kill":
            self._dispatch([SendKeys(identity, "C-c")], received_at)

    def _on_key(self, msg: KeyMsg) -> None:
        kind = self._bindings.get(msg.key)
        if kind is None or msg.identity is None:
            LOG.debug("Key %r ignored (target=%s)", msg.key, msg.identity)
            return
        self._on_command(UserCommand(kind=kind, identity=msg.identity), msg.received_at)

    def _on_register(self, msg: RegisterMsg) -> None:
        if self.store.attach_loop(msg.key, msg.config):
            return
        self.store.pending.register(msg.key, msg.config, msg.received_at)

    def _on_spawned(self, msg: SpawnedMsg) -> None:
        if msg.identity not in self.store:
            self.store.pending.alias(msg.spawn_key, msg.identity)
            return
        # the worker already reported without its spawn key
        config = self.store.pending.claim(msg.spawn_key)
        if config is not None:
            self.store.attach_loop(msg.identity, config)

    def _dispatch(self, commands: Sequence[SinkCommand], at: float) -> None:
        rejected = self._submit(commands) or ()
        for command in rejected:
            target = command.parent if isinstance(command, SpawnWorker) else command.identity
            self._warn(at, target, f"command dropped, dispatcher full: {type(command).__name__}")

    def _warn(
        self,
        at: float,
        identity: str,
        message: str,
        severity: Literal["info", "warning", "error"] = "warning",
    ) -> None:
        self.store.note(Notice(at=at, message=message, identity=identity, severity=severity))

    def _on_render(self) -> None:
        if self._publish is None or self.store.version == self._published_version:
            return
        self._published_version = self.store.version
        self._publish(self.store.snapshot())
