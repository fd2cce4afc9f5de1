from .messages import (
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
from .multiplexer import EventIntake, parse_hook_event

__all__ = [
    "CommandMsg",
    "EventIntake",
    "HookMsg",
    "KeyMsg",
    "LogicTick",
    "NoticeMsg",
    "QueueItem",
    "ReconcileMsg",
    "RegisterMsg",
    "RenderTick",
    "SpawnedMsg",
    "parse_hook_event",
]
