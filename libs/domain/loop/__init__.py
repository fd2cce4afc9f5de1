from .judge import PROMISE_COMPLETE_TAG, Verdict, is_stalled, judge
from .orchestrator import LoopOrchestrator, LoopOutcome
from .pending import PendingConfigs

__all__ = [
    "PROMISE_COMPLETE_TAG",
    "LoopOrchestrator",
    "LoopOutcome",
    "PendingConfigs",
    "Verdict",
    "is_stalled",
    "judge",
]
