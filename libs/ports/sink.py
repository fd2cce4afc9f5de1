from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class SendInput:
    """Type text into the agent's controlling session, optionally pressing Enter."""

    identity: str
    text: str
    submit: bool = True
    delay_s: float = 0.0


@dataclass(frozen=True)
class SendKeys:
    """Raw key names (e.g. ``C-c``), no Enter appended."""

    identity: str
    keys: str
    delay_s: float = 0.0


@dataclass(frozen=True)
class SpawnWorker:
    spawn_key: str  # provisional identity until the worker first reports
    parent: str
    task_id: str
    prompt: str
    cwd: str | None = None
    delay_s: float = 0.0


SinkCommand = SendInput | SendKeys | SpawnWorker


class CommandSinkPort(ABC):
    """Executes commands against agent sessions. Implementations raise SinkError."""

    @abstractmethod
    def send_input(self, identity: str, text: str, submit: bool = True) -> None: ...

    @abstractmethod
    def send_keys(self, identity: str, keys: str) -> None: ...

    @abstractmethod
    def spawn(self, request: SpawnWorker) -> str:
        """Start a worker session and return its identity."""
        ...

    def execute(self, command: SinkCommand) -> str | None:
        if isinstance(command, SendInput):
            self.send_input(command.identity, command.text, command.submit)
            return None
        if isinstance(command, SendKeys):
            self.send_keys(command.identity, command.keys)
            return None
        return self.spawn(command)
