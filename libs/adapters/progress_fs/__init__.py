from .background import BackgroundProgressStore
from .fakes import InMemoryProgressStore
from .store import FsProgressStore, LoopStateRecord
from .tasks import parse_pending_tasks

__all__ = [
    "BackgroundProgressStore",
    "FsProgressStore",
    "InMemoryProgressStore",
    "LoopStateRecord",
    "parse_pending_tasks",
]
