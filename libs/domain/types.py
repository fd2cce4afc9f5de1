from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class StatusKind(str, Enum):
    IDLE = "idle"
    WORKING = "working"
    ATTENTION = "attention"
    COMPACTING = "compacting"
    ORPHANED = "orphaned"


class AttentionKind(str, Enum):
    PERMISSION = "permission"
    NOTIFICATION = "notification"
    WAITING = "waiting"


@dataclass(frozen=True)
class Status:
    kind: StatusKind
    attention: AttentionKind | None = None

    @property
    def bucket(self) -> str:
        """Key used for the cached per-status counts."""
        return self.kind.value

    def __str__(self) -> str:
        if self.attention is None:
            return self.kind.value
        return f"{self.kind.value}/{self.attention.value}"


IDLE = Status(StatusKind.IDLE)
WORKING = Status(StatusKind.WORKING)
COMPACTING = Status(StatusKind.COMPACTING)
ORPHANED = Status(StatusKind.ORPHANED)
PERMISSION = Status(StatusKind.ATTENTION, AttentionKind.PERMISSION)
NOTIFICATION = Status(StatusKind.ATTENTION, AttentionKind.NOTIFICATION)
WAITING = Status(StatusKind.ATTENTION, AttentionKind.WAITING)


class LoopMode(str, Enum):
    NONE = "none"
    ACTIVE = "active"
    STALLED = "stalled"
    COMPLETE = "complete"
    CANCELLED = "cancelled"


class ObservedRole(str, Enum):
    PLANNER = "planner"
    WORKER = "worker"
    REVIEWER = "reviewer"
    GENERAL = "general"


class Decision(str, Enum):
    CONTINUE = "continue"
    COMPLETE = "complete"
    STALLED = "stalled"
