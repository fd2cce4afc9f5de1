from __future__ import annotations

from collections.abc import Iterable
from typing import Final

from domain.types import ObservedRole

READ_ONLY_TOOLS: Final = frozenset(
    {
        "Read",
        "Glob",
        "Grep",
        "WebFetch",
        "WebSearch",
        "ListMcpResourcesTool",
        "ReadMcpResourceTool",
        "Task",
        "TodoRead",
        "TaskList",
        "TaskGet",
        "Skill",
        "AskUserQuestion",
        "EnterPlanMode",
        "ExitPlanMode",
    }
)

MUTATION_TOOLS: Final = frozenset(
    {
        "Edit",
        "Write",
        "Bash",
        "NotebookEdit",
        "TodoWrite",
        "TaskCreate",
        "TaskUpdate",
        "SendMessage",
        "TeamCreate",
        "TeamDelete",
    }
)


def infer_role(tools: Iterable[str]) -> ObservedRole:
    """Classify recent tool usage.

    Reviewer: reading again (2+) after the last mutation.
    Worker: any mutation otherwise.
    Planner: mostly reads (>= 80% of at least 3 calls).
    """
    history = list(tools)
    if not history:
        return ObservedRole.GENERAL

    last_mutation = max(
        (i for i, name in enumerate(history) if name in MUTATION_TOOLS), default=None
    )
    if last_mutation is not None:
        reads_after = sum(1 for name in history[last_mutation + 1 :] if name in READ_ONLY_TOOLS)
        if reads_after >= 2:
            return ObservedRole.REVIEWER
        return ObservedRole.WORKER

    reads = sum(1 for name in history if name in READ_ONLY_TOOLS)
    if len(history) >= 3 and reads / len(history) >= 0.8:
        return ObservedRole.PLANNER
    return ObservedRole.GENERAL
