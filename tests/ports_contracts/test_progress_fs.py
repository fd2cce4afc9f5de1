from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
from adapters.progress_fs import BackgroundProgressStore, FsProgressStore, parse_pending_tasks
from ports.progress import PendingTask

pytestmark = pytest.mark.contract


def test_missing_files_read_as_empty(tmp_path: Path):
    store = FsProgressStore()
    loop_dir = str(tmp_path / "nowhere")
    assert store.read_progress(loop_dir) == ""
    assert store.read_anchor(loop_dir) == ""
    assert store.pending_tasks(loop_dir) == []


def test_reads_loop_files(tmp_path: Path):
    (tmp_path / "progress.md").write_text("step 1 done\n")
    (tmp_path / "anchor.md").write_text("build the parser\n")
    (tmp_path / "tasks.md").write_text("## Pending\n- [ ] [T-1] parse headers\n")
    store = FsProgressStore()
    assert store.read_progress(str(tmp_path)) == "step 1 done\n"
    assert store.read_anchor(str(tmp_path)) == "build the parser\n"
    assert store.pending_tasks(str(tmp_path)) == [PendingTask("T-1", "parse headers")]


def test_undecodable_bytes_are_replaced(tmp_path: Path):
    (tmp_path / "progress.md").write_bytes(b"step \xff\xfe done\n")
    text = FsProgressStore().read_progress(str(tmp_path))
    assert text == "step \ufffd\ufffd done\n"


def test_oversized_files_keep_their_tail(tmp_path: Path):
    (tmp_path / "progress.md").write_text("x" * 100 + "DONE")
    text = FsProgressStore(max_read_bytes=10).read_progress(str(tmp_path))
    assert text == "xxxxxxDONE"


def test_background_writes_land_in_order(tmp_path: Path):
    store = BackgroundProgressStore(FsProgressStore())
    loop_dir = str(tmp_path)
    try:
        for i in range(1, 4):
            store.record_iteration(loop_dir, i, "continue")
            store.append_history(loop_dir, f"iteration {i}")
        assert store.record_error(loop_dir, "tests fail") is False
        store.flush()
    finally:
        store.close()

    state = json.loads((tmp_path / "state.json").read_text())
    assert state["iteration"] == 3
    assert state["error_counts"] == {"tests fail": 1}
    lines = (tmp_path / "session_history.log").read_text().splitlines()
    assert [line.split(" ", 1)[1] for line in lines] == [f"iteration {i}" for i in range(1, 4)]


def test_background_write_failures_are_logged(tmp_path: Path, caplog):
    caplog.set_level(logging.WARNING, logger="hivewatch.progress")
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("")
    store = BackgroundProgressStore(FsProgressStore())
    try:
        store.append_history(str(blocker), "iteration 1")
        store.flush()
    finally:
        store.close()
    assert "Cannot append history" in caplog.text


def test_history_keeps_the_last_fifty_lines(tmp_path: Path):
    store = FsProgressStore()
    for i in range(60):
        store.append_history(str(tmp_path), f"iteration {i}")
    lines = (tmp_path / "session_history.log").read_text().splitlines()
    assert len(lines) == 50
    assert lines[0].endswith("iteration 10")
    assert lines[-1].endswith("iteration 59")


def test_record_iteration_keeps_foreign_keys(tmp_path: Path):
    (tmp_path / "state.json").write_text(json.dumps({"iteration": 1, "owner": "worker-3"}))
    FsProgressStore().record_iteration(str(tmp_path), 2, "continue")

    state = json.loads((tmp_path / "state.json").read_text())
    assert state["iteration"] == 2
    assert state["last_decision"] == "continue"
    assert state["owner"] == "worker-3"
    assert "updated_at" in state
    assert not (tmp_path / "state.json.tmp").exists()


def test_corrupt_state_starts_over(tmp_path: Path):
    (tmp_path / "state.json").write_text("{not json")
    FsProgressStore().record_iteration(str(tmp_path), 4, "stop")
    state = json.loads((tmp_path / "state.json").read_text())
    assert state["iteration"] == 4
    assert state["error_counts"] == {}


def test_third_identical_error_becomes_a_guardrail(tmp_path: Path):
    store = FsProgressStore()
    results = [store.record_error(str(tmp_path), "ImportError: yaml") for _ in range(4)]
    assert results == [False, False, True, False]

    guardrails = (tmp_path / "guardrails.md").read_text()
    assert guardrails.count("ImportError: yaml") == 1
    state = json.loads((tmp_path / "state.json").read_text())
    assert state["error_counts"] == {"ImportError: yaml": 4}


def test_parse_pending_tasks_only_reads_the_pending_section():
    text = "\n".join(
        [
            "# Tasks",
            "- [ ] [T-0] not pending yet",
            "## Pending",
            "- [ ] [T-1] first",
            "* [ ]  [T-2]   second  ",
            "- [x] [T-3] already done",
            "- [ ] no id here",
            "## Done",
            "- [ ] [T-4] misfiled",
        ]
    )
    assert parse_pending_tasks(text) == [
        PendingTask("T-1", "first"),
        PendingTask("T-2", "second"),
    ]
