from __future__ import annotations

from typing import Literal

IntakeCode = Literal["bad-json", "invalid-record", "queue-full", "closed"]
CommandCode = Literal["bad-command", "unknown-agent", "queue-full"]


class HivewatchError(Exception):
    """Base class for errors raised by the monitor core."""


class IntakeError(HivewatchError):
    def __init__(self, code: IntakeCode, detail: str = "") -> None:
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code: IntakeCode = code
        self.detail = detail


class CommandError(HivewatchError):
    def __init__(self, code: CommandCode, detail: str = "") -> None:
        super().__init__(f"{code}: {detail}" if detail else code)
        self.code: CommandCode = code
        self.detail = detail


class StartupError(HivewatchError):
    """Fatal: the monitor cannot start (socket bind, queue allocation)."""


class SinkError(HivewatchError):
    """A command could not be handed to the agent's controlling session."""


class ProbeError(HivewatchError):
    """Reconciliation could not determine whether a handle still exists."""
