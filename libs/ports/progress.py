from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PendingTask:
    task_id: str
    description: str


class ProgressStorePort(ABC):
    """Durable loop state kept next to the agent's work, outside the core.

    The core only reads text for heuristics and appends metadata.
    Missing files read as empty.
    """

    @abstractmethod
    def read_progress(self, loop_dir: str) -> str: ...

    @abstractmethod
    def read_anchor(self, loop_dir: str) -> str: ...

    @abstractmethod
    def pending_tasks(self, loop_dir: str) -> list[PendingTask]: ...

    @abstractmethod
    def append_history(self, loop_dir: str, line: str) -> None: ...

    @abstractmethod
    def record_iteration(self, loop_dir: str, iteration: int, decision: str) -> None: ...

    @abstractmethod
    def record_error(self, loop_dir: str, pattern: str) -> bool:
        """Count a recurring error; True when it was promoted to a guardrail."""
        ...
