from __future__ import annotations

import os
from datetime import datetime
from pathlib import Path
from typing import Final

from ports.progress import PendingTask, ProgressStorePort
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from shared.contracts.v1.ipc_wire import utc_now

from .tasks import parse_pending_tasks

ANCHOR_FILE: Final = "anchor.md"
PROGRESS_FILE: Final = "progress.md"
GUARDRAILS_FILE: Final = "guardrails.md"
TASKS_FILE: Final = "tasks.md"
STATE_FILE: Final = "state.json"
HISTORY_FILE: Final = "session_history.log"

MAX_HISTORY_LINES: Final = 50
GUARDRAIL_THRESHOLD: Final = 3
MAX_READ_BYTES: Final = 1 << 20


class LoopStateRecord(BaseModel):
    """state.json; agents may add their own keys, which are preserved."""

    model_config = ConfigDict(extra="allow")

    iteration: int = 0
    last_decision: str | None = None
    updated_at: datetime = Field(default_factory=utc_now)
    error_counts: dict[str, int] = Field(default_factory=dict)


class FsProgressStore(ProgressStorePort):
    """Loop state as plain files in a per-loop directory."""

    def __init__(self, max_read_bytes: int = MAX_READ_BYTES) -> None:
        self.max_read_bytes = max_read_bytes

    def _read(self, loop_dir: str, name: str) -> str:
        """Agent-written text; undecodable bytes become U+FFFD, oversized files keep their tail."""
        try:
            with (Path(loop_dir) / name).open("rb") as fh:
                size = os.fstat(fh.fileno()).st_size
                if size > self.max_read_bytes:
                    fh.seek(size - self.max_read_bytes)
                raw = fh.read(self.max_read_bytes)
        except FileNotFoundError:
            return ""
        return raw.decode("utf-8", errors="replace")

    def _write_atomic(self, path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)

    def _load_state(self, loop_dir: str) -> LoopStateRecord:
        raw = self._read(loop_dir, STATE_FILE)
        if not raw.strip():
            return LoopStateRecord()
        try:
            return LoopStateRecord.model_validate_json(raw)
        except ValidationError:
            # an agent scribbled over it; start a fresh record rather than fail the loop
            return LoopStateRecord()

    def _save_state(self, loop_dir: str, state: LoopStateRecord) -> None:
        state.updated_at = utc_now()
        self._write_atomic(Path(loop_dir) / STATE_FILE, state.model_dump_json(indent=2))

    # --- port -----------------------------------------------------------------

    def read_progress(self, loop_dir: str) -> str:
        return self._read(loop_dir, PROGRESS_FILE)

    def read_anchor(self, loop_dir: str) -> str:
        return self._read(loop_dir, ANCHOR_FILE)

    def pending_tasks(self, loop_dir: str) -> list[PendingTask]:
        return parse_pending_tasks(self._read(loop_dir, TASKS_FILE))

    def append_history(self, loop_dir: str, line: str) -> None:
        path = Path(loop_dir) / HISTORY_FILE
        lines = self._read(loop_dir, HISTORY_FILE).splitlines()
        lines.append(f"{utc_now().isoformat(timespec='seconds')} {line}")
        self._write_atomic(path, "\n".join(lines[-MAX_HISTORY_LINES:]) + "\n")

    def record_iteration(self, loop_dir: str, iteration: int, decision: str) -> None:
        state = self._load_state(loop_dir)
        state.iteration = iteration
        state.last_decision = decision
        self._save_state(loop_dir, state)

    def record_error(self, loop_dir: str, pattern: str) -> bool:
        state = self._load_state(loop_dir)
        count = state.error_counts.get(pattern, 0) + 1
        state.error_counts[pattern] = count
        self._save_state(loop_dir, state)
        if count != GUARDRAIL_THRESHOLD:
            return False
        path = Path(loop_dir) / GUARDRAILS_FILE
        with path.open("a", encoding="utf-8") as fh:
            fh.write(
                f"\n- Auto-detected: {pattern!r} occurred {GUARDRAIL_THRESHOLD} times; "
                "try a different approach.\n"
            )
        return True
