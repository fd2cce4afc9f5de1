from .model import Agent, LoopState, LoopUpdate, LoopView
from .roles import infer_role
from .status import activity_value, after_silence, next_status
from .store import AgentStore

__all__ = [
    "Agent",
    "AgentStore",
    "LoopState",
    "LoopUpdate",
    "LoopView",
    "activity_value",
    "after_silence",
    "infer_role",
    "next_status",
]
