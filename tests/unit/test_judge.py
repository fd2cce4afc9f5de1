from __future__ import annotations

from domain.loop import PROMISE_COMPLETE_TAG, is_stalled, judge
from domain.loop.judge import (
    anchor_coverage,
    contains_stop_word,
    has_completion_tag,
    is_planning_complete,
)
from domain.types import Decision


def test_completion_phrases():
    v = judge("Refactor done. All tasks completed and all tests pass.")
    assert v.decision is Decision.COMPLETE
    assert v.confidence > 0.6


def test_blockage_phrases():
    v = judge("I am stuck on the migration; blocked by missing credentials.")
    assert v.decision is Decision.STALLED


def test_completion_wins_over_blockage():
    assert judge("was blocked by CI, now implementation complete").decision is Decision.COMPLETE


def test_no_signal_continues():
    v = judge("Wrote the parser skeleton, next the lexer.")
    assert v.decision is Decision.CONTINUE
    assert v.confidence == 0.5


def test_anchor_coverage_completes_long_progress():
    anchor = "# Goal\n- implement tokenizer\n- implement evaluator\n- document grammar\n"
    progress = " ".join(["filler"] * 210) + " tokenizer evaluator grammar implement document"
    assert anchor_coverage(progress, anchor) == 1.0
    assert judge(progress, anchor).decision is Decision.COMPLETE
    # short notes never complete on coverage alone
    assert judge("tokenizer evaluator grammar", anchor).decision is Decision.CONTINUE


def test_anchor_without_requirements_is_unmeasurable():
    assert anchor_coverage("anything", "Just prose, no list.") is None


def test_markers():
    assert contains_stop_word("we are done here", "DONE")
    assert not contains_stop_word("anything", "")
    assert has_completion_tag(f"notes {PROMISE_COMPLETE_TAG}")
    assert not has_completion_tag("<promise>complete</promise>")
    assert is_planning_complete("## PLANNING COMPLETE")


def test_stall_needs_a_full_window_of_identical_reasons():
    assert not is_stalled(["x"] * 4)
    assert is_stalled(["x"] * 5)
    assert not is_stalled(["x", "x", "y", "x", "x"])
    assert is_stalled(["y", "x", "x", "x", "x", "x"])
    assert is_stalled(["x", "x"], window=2)
