"""Everything the serial consumer can receive.

Every source (hook socket, keyboard, timers, control channel, background
workers) is normalised into one of these immutable messages before it is
queued.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from shared.contracts.v1.commands import LoopConfig, UserCommand
from shared.contracts.v1.hook import HookEvent


@dataclass(frozen=True)
class HookMsg:
    event: HookEvent
    received_at: float


@dataclass(frozen=True)
class KeyMsg:
    key: str
    identity: str | None
    received_at: float


@dataclass(frozen=True)
class CommandMsg:
    command: UserCommand
    received_at: float


@dataclass(frozen=True)
class RegisterMsg:
    key: str  # identity or provisional spawn key
    config: LoopConfig
    received_at: float


@dataclass(frozen=True)
class SpawnedMsg:
    spawn_key: str
    identity: str
    received_at: float


@dataclass(frozen=True)
class ReconcileMsg:
    identity: str
    alive: bool
    received_at: float


@dataclass(frozen=True)
class NoticeMsg:
    message: str
    identity: str | None
    received_at: float
    severity: Literal["info", "warning", "error"] = "warning"


@dataclass(frozen=True)
class LogicTick:
    now: float


@dataclass(frozen=True)
class RenderTick:
    now: float


QueueItem = (
    HookMsg
    | KeyMsg
    | CommandMsg
    | RegisterMsg
    | SpawnedMsg
    | ReconcileMsg
    | NoticeMsg
    | LogicTick
    | RenderTick
)
