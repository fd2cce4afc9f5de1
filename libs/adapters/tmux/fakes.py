from __future__ import annotations

from domain.errors import ProbeError, SinkError
from ports.probe import PaneProbePort
from ports.sink import CommandSinkPort, SpawnWorker


class RecordingCommandSink(CommandSinkPort):
    """Records what would have been sent to the agent sessions."""

    def __init__(self, fail_for: set[str] | None = None) -> None:
        self.inputs: list[tuple[str, str, bool]] = []
        self.keys: list[tuple[str, str]] = []
        self.spawned: list[SpawnWorker] = []
        self.fail_for = set(fail_for or ())
        self._next_pane = 100

    def _check(self, identity: str) -> None:
        if identity in self.fail_for:
            raise SinkError(f"no session for {identity}")

    def send_input(self, identity: str, text: str, submit: bool = True) -> None:
        self._check(identity)
        self.inputs.append((identity, text, submit))

    def send_keys(self, identity: str, keys: str) -> None:
        self._check(identity)
        self.keys.append((identity, keys))

    def spawn(self, request: SpawnWorker) -> str:
        self._check(request.parent)
        self.spawned.append(request)
        self._next_pane += 1
        return f"%{self._next_pane}"


class FakePaneProbe(PaneProbePort):
    def __init__(self, alive: set[str] | None = None, broken: set[str] | None = None) -> None:
        self.alive = set(alive or ())
        self.broken = set(broken or ())
        self.checked: list[str] = []

    def handles(self, identity: str) -> bool:
        return True

    def exists(self, identity: str) -> bool:
        self.checked.append(identity)
        if identity in self.broken:
            raise ProbeError(f"cannot query {identity}")
        return identity in self.alive
