from __future__ import annotations

from collections import defaultdict

from ports.progress import PendingTask, ProgressStorePort

from .store import GUARDRAIL_THRESHOLD
from .tasks import parse_pending_tasks


class InMemoryProgressStore(ProgressStorePort):
    """Loop directories held in dicts; ``files[loop_dir][name]`` mirrors the fs layout."""

    def __init__(self) -> None:
        self.files: dict[str, dict[str, str]] = defaultdict(dict)
        self.history: dict[str, list[str]] = defaultdict(list)
        self.iterations: dict[str, list[tuple[int, str]]] = defaultdict(list)
        self.error_counts: dict[str, dict[str, int]] = defaultdict(dict)
        self.guardrails: dict[str, list[str]] = defaultdict(list)

    # Test helper
    def write(self, loop_dir: str, name: str, text: str) -> None:
        self.files[loop_dir][name] = text

    def read_progress(self, loop_dir: str) -> str:
        return self.files[loop_dir].get("progress.md", "")

    def read_anchor(self, loop_dir: str) -> str:
        return self.files[loop_dir].get("anchor.md", "")

    def pending_tasks(self, loop_dir: str) -> list[PendingTask]:
        return parse_pending_tasks(self.files[loop_dir].get("tasks.md", ""))

    def append_history(self, loop_dir: str, line: str) -> None:
        self.history[loop_dir].append(line)

    def record_iteration(self, loop_dir: str, iteration: int, decision: str) -> None:
        self.iterations[loop_dir].append((iteration, decision))

    def record_error(self, loop_dir: str, pattern: str) -> bool:
        counts = self.error_counts[loop_dir]
        counts[pattern] = counts.get(pattern, 0) + 1
        if counts[pattern] == GUARDRAIL_THRESHOLD:
            self.guardrails[loop_dir].append(pattern)
            return True
        return False
