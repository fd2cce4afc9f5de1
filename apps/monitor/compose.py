from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Coroutine
from typing import Any, Final, TypeVar

from adapters.hook_socket import UnixHookListener
from adapters.progress_fs import BackgroundProgressStore, FsProgressStore
from adapters.telemetry import LoggingMetricsPort
from adapters.time import MonotonicClockPort
from domain.agent import AgentStore
from domain.engine import MonitorEngine
from domain.errors import CommandError, IntakeError, ProbeError
from domain.intake import EventIntake, LogicTick, NoticeMsg, ReconcileMsg, RenderTick
from domain.loop import LoopOrchestrator
from ports.input import KeyInputPort
from ports.ipc import ControlServerPort, SnapshotPubPort
from ports.probe import PaneProbePort
from ports.progress import ProgressStorePort
from ports.sink import CommandSinkPort
from ports.telemetry import MetricsPort
from ports.time import ClockPort
from pydantic import ValidationError
from shared.contracts.v1.commands import (
    CONTROL_REQUEST,
    CommandRequest,
    LoopConfig,
    RegisterRequest,
)
from shared.contracts.v1.snapshot import Snapshot

from apps.monitor.dispatch import CommandDispatcher
from apps.monitor.settings import MonitorSettings

LOG: Final = logging.getLogger("hivewatch.monitor")

_T = TypeVar("_T")


def build_ipc(settings: MonitorSettings) -> tuple[ControlServerPort, SnapshotPubPort]:
    control: ControlServerPort
    snapshot_pub: SnapshotPubPort

    if settings.ipc_impl == "zmq":
        from adapters.ipc_zmq import ZmqControlClient, ZmqSnapshotPubPort

        control = ZmqControlClient.bind_rep(settings.control_bind)
        snapshot_pub = ZmqSnapshotPubPort.bind_pub(settings.snapshot_bind)
    else:
        from adapters.ipc_inproc import InprocControlServerPort, InprocSnapshotPubPort

        control = InprocControlServerPort.create()
        snapshot_pub = InprocSnapshotPubPort.create()

    return control, snapshot_pub


def build_sink(settings: MonitorSettings) -> CommandSinkPort:
    if settings.sink_impl == "tmux":
        from adapters.tmux import TmuxCommandSink

        return TmuxCommandSink(agent_command=settings.agent_command)
    from adapters.tmux import RecordingCommandSink

    return RecordingCommandSink()


def build_probe(settings: MonitorSettings) -> PaneProbePort | None:
    if not settings.reconcile_enabled or settings.sink_impl != "tmux":
        return None
    from adapters.tmux import TmuxPaneProbe

    return TmuxPaneProbe()


class MonitorApp:
    """Wires the intake, the serial consumer and the background workers together."""

    def __init__(
        self,
        settings: MonitorSettings,
        *,
        clock: ClockPort | None = None,
        sink: CommandSinkPort | None = None,
        probe: PaneProbePort | None = None,
        progress: ProgressStorePort | None = None,
        control: ControlServerPort | None = None,
        snapshot_pub: SnapshotPubPort | None = None,
        metrics: MetricsPort | None = None,
        key_input: KeyInputPort | None = None,
    ) -> None:
        self.settings = settings
        self.clock = clock or MonotonicClockPort()
        if control is None or snapshot_pub is None:
            built_control, built_pub = build_ipc(settings)
            control = control or built_control
            snapshot_pub = snapshot_pub or built_pub
        self.control = control
        self.snapshot_pub = snapshot_pub
        self.probe = probe if probe is not None else build_probe(settings)
        self.key_input = key_input

        self.intake = EventIntake(self.clock, settings.queue_capacity, settings.put_timeout_s)
        self.store = AgentStore(
            max_agents=settings.max_agents,
            idle_timeout_s=settings.idle_timeout_s,
            stale_timeout_s=settings.stale_timeout_s,
            pending_timeout_s=settings.pending_config_timeout_s,
            metrics=metrics or LoggingMetricsPort(),
        )
        self._writer = BackgroundProgressStore(FsProgressStore()) if progress is None else None
        loop_cfg = settings.loop
        self.orchestrator = LoopOrchestrator(
            progress or self._writer,
            max_workers=loop_cfg.max_workers,
            spawn_delay_s=loop_cfg.spawn_delay_s,
            worker_max_iterations=loop_cfg.worker_max_iterations,
            worker_stop_word=loop_cfg.default_stop_word,
            continue_input=loop_cfg.continue_input,
            stall_window=loop_cfg.stall_window,
        )
        self.dispatcher = CommandDispatcher(
            sink or build_sink(settings), self.intake, settings.dispatch_capacity
        )
        self.engine = MonitorEngine(
            self.store,
            self.orchestrator,
            dispatch=self.dispatcher.submit,
            publish=self._publish,
        )
        self.listener = UnixHookListener(
            settings.socket_path,
            self.intake.submit,
            max_connections=settings.max_connections,
            read_timeout_s=settings.read_timeout_s,
            max_record_bytes=settings.max_record_bytes,
            report=self._report,
        )

        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: list[asyncio.Task[None]] = []
        self._stopped = asyncio.Event()
        self._control_stop = threading.Event()
        self._control_thread: threading.Thread | None = None

    # --- lifecycle -------------------------------------------------------------------

    async def start(self) -> None:
        """Bind the hook socket and launch workers; raises StartupError before anything runs."""
        if self._tasks:
            return
        await self.listener.start()
        self._loop = asyncio.get_running_loop()

        s = self.settings
        self._tasks = [
            asyncio.create_task(self.consume(), name="hivewatch-consume"),
            asyncio.create_task(self.dispatcher.run(), name="hivewatch-dispatch"),
            asyncio.create_task(
                self.intake.ticker(1.0 / max(0.01, s.logic_tick_hz), LogicTick),
                name="hivewatch-logic-tick",
            ),
            asyncio.create_task(
                self.intake.ticker(1.0 / max(0.01, s.render_tick_hz), RenderTick),
                name="hivewatch-render-tick",
            ),
        ]
        if self.probe is not None:
            self._tasks.append(asyncio.create_task(self.reconcile(), name="hivewatch-reconcile"))

        if self.key_input is not None:
            loop = self._loop
            self.key_input.subscribe(
                lambda key, identity: loop.call_soon_threadsafe(
                    self.intake.key_pressed, key, identity
                )
            )

        self._control_thread = threading.Thread(
            target=self._serve_control, name="hivewatch-control", daemon=True
        )
        self._control_thread.start()
        LOG.info(
            "Monitor started (max_agents=%d, idle=%.0fs, stale=%.0fs)",
            s.max_agents,
            s.idle_timeout_s,
            s.stale_timeout_s,
        )

    async def run(self) -> None:
        await self.start()
        try:
            await self._stopped.wait()
        finally:
            await self.aclose()

    def stop(self) -> None:
        self._stopped.set()

    async def aclose(self) -> None:
        self.intake.close()
        self._control_stop.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
        await self.listener.close()
        if self._control_thread is not None:
            await asyncio.to_thread(self._control_thread.join, 1.0)
            self._control_thread = None
        self.control.close()
        self.snapshot_pub.close()
        if self._writer is not None:
            await asyncio.to_thread(self._writer.close)
        LOG.info("Monitor stopped after %d queue items", self.engine.handled)

    # --- serial consumer ---------------------------------------------------------------

    async def consume(self) -> None:
        while True:
            item = await self.intake.get()
            self.engine.handle(item)

    def _publish(self, snapshot: Snapshot) -> None:
        self.snapshot_pub.publish("snapshot", snapshot.model_dump(mode="json"))

    async def _report(self, message: str) -> None:
        await self._push(NoticeMsg(message, None, self.clock.now()))

    async def _push(self, item: NoticeMsg | ReconcileMsg) -> None:
        try:
            await self.intake.push(item)
        except IntakeError as ex:
            LOG.error("Could not queue %s (%s)", type(item).__name__, ex.code)

    # --- reconciliation ---------------------------------------------------------------

    async def reconcile(self) -> None:
        while True:
            await asyncio.sleep(self.settings.reconcile_interval_s)
            await self.reconcile_once()

    async def reconcile_once(self) -> int:
        """Probe every agent's handle; returns how many were found gone."""
        probe = self.probe
        if probe is None:
            return 0
        gone = 0
        for identity in [i for i in self.store.identities() if probe.handles(i)]:
            try:
                alive = await asyncio.to_thread(probe.exists, identity)
            except ProbeError as ex:
                LOG.warning("Reconcile check failed for %s: %s", identity, ex)
                await self._push(
                    NoticeMsg(f"reconcile check failed: {ex}", identity, self.clock.now())
                )
                continue
            if not alive:
                gone += 1
                await self._push(ReconcileMsg(identity, False, self.clock.now()))
        return gone

    # --- core-exposed operations -------------------------------------------------------

    async def submit_event(self, raw: bytes | str) -> None:
        await self.intake.submit(raw)

    async def submit_command(self, kind: str, identity: str) -> None:
        await self.intake.submit_command(kind, identity)

    async def register_loop_config(self, key: str, config: LoopConfig) -> None:
        await self.intake.register_loop_config(key, config)

    def snapshot(self) -> Snapshot:
        """Call from the event loop thread; other threads go through the control channel."""
        return self.store.snapshot()

    # --- control channel (runs in its own thread) ----------------------------------------

    def _serve_control(self) -> None:
        while not self._control_stop.is_set():
            try:
                busy = self.control.poll_once(self.handle_control)
            except Exception:
                LOG.exception("Control channel error")
                busy = False
            if not busy:
                self._control_stop.wait(0.01)

    def _call(self, coro: Coroutine[Any, Any, _T]) -> _T:
        if self._loop is None:
            coro.close()
            raise RuntimeError("monitor is not running")
        return asyncio.run_coroutine_threadsafe(coro, self._loop).result(timeout=5.0)

    async def _snapshot_json(self) -> dict[str, Any]:
        return self.store.snapshot().model_dump(mode="json")

    def handle_control(self, request: dict) -> dict:
        try:
            req = CONTROL_REQUEST.validate_python(request)
        except ValidationError as ex:
            raise ValueError(f"malformed control request: {ex.error_count()} error(s)") from ex

        if isinstance(req, CommandRequest):
            try:
                self._call(self.intake.submit_command(req.kind, req.identity))
            except CommandError as ex:
                raise ValueError(str(ex)) from ex
            return {"queued": True, "kind": req.kind, "identity": req.identity}
        if isinstance(req, RegisterRequest):
            self._call(self.intake.register_loop_config(req.key, req.config))
            return {"queued": True, "key": req.key}
        return self._call(self._snapshot_json())
