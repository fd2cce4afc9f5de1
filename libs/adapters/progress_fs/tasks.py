from __future__ import annotations

import re
from typing import Final

from ports.progress import PendingTask

# - [ ] [TASK-001] Implement the parser
_TASK_LINE: Final = re.compile(r"^\s*[-*]\s*\[ \]\s*\[([^\]]+)\]\s*(.+?)\s*$")


def parse_pending_tasks(text: str) -> list[PendingTask]:
    """Unchecked tasks listed under the ``## Pending`` heading, in file order."""
    out: list[PendingTask] = []
    in_pending = False
    for line in text.splitlines():
        if line.startswith("#"):
            in_pending = line.lstrip("#").strip().lower() == "pending"
            continue
        if not in_pending:
            continue
        m = _TASK_LINE.match(line)
        if m:
            out.append(PendingTask(task_id=m.group(1).strip(), description=m.group(2)))
    return out
