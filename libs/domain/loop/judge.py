"""Heuristics deciding whether a looped agent should keep going.

The circuit breakers are cheap, hard rules checked first. ``judge`` is the
fallback that pattern-matches the agent's own progress notes.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Final

from domain.types import Decision

PROMISE_COMPLETE_TAG: Final = "<promise>COMPLETE</promise>"
PLANNING_COMPLETE_MARKER: Final = "PLANNING COMPLETE"

COMPLETION_PHRASES: Final = (
    "all tasks completed",
    "implementation complete",
    "successfully implemented",
    "task is done",
    "work is complete",
    "finished implementing",
    "all requirements met",
    "nothing left to do",
    "ready for review",
    "all tests pass",
)

STALL_PHRASES: Final = (
    "blocked by",
    "need clarification",
    "cannot proceed",
    "stuck on",
    "waiting for",
    "unclear requirements",
    "need more information",
    "error persists",
)

_MIN_PROGRESS_WORDS: Final = 200
_COVERAGE_THRESHOLD: Final = 0.7
_WORD = re.compile(r"[a-z0-9_]+")


@dataclass(frozen=True)
class Verdict:
    decision: Decision
    confidence: float
    explanation: str


def contains_stop_word(text: str, stop_word: str) -> bool:
    return bool(stop_word) and stop_word.upper() in text.upper()


def has_completion_tag(text: str) -> bool:
    return PROMISE_COMPLETE_TAG in text


def is_planning_complete(text: str) -> bool:
    return PLANNING_COMPLETE_MARKER in text


def is_stalled(reasons: Sequence[str], window: int = 5) -> bool:
    """The last ``window`` recorded stop reasons are all the same."""
    if window < 1 or len(reasons) < window:
        return False
    tail = list(reasons)[-window:]
    return all(r == tail[0] for r in tail)


def _requirement_keywords(anchor: str) -> set[str]:
    words: set[str] = set()
    for line in anchor.splitlines():
        line = line.strip()
        if not line.startswith(("-", "*")) and not line[:1].isdigit():
            continue
        words.update(w for w in _WORD.findall(line.lower()) if len(w) > 4)
    return words


def anchor_coverage(progress: str, anchor: str) -> float | None:
    """Share of requirement keywords mentioned in the progress notes, if measurable."""
    keywords = _requirement_keywords(anchor)
    if not keywords:
        return None
    seen = set(_WORD.findall(progress.lower()))
    return len(keywords & seen) / len(keywords)


def judge(progress: str, anchor: str = "") -> Verdict:
    text = progress.lower()

    done = [p for p in COMPLETION_PHRASES if p in text]
    if done:
        return Verdict(
            Decision.COMPLETE,
            min(0.6 + 0.1 * len(done), 0.95),
            f"completion phrase: {done[0]!r}",
        )

    blocked = [p for p in STALL_PHRASES if p in text]
    if blocked:
        return Verdict(
            Decision.STALLED,
            min(0.6 + 0.1 * len(blocked), 0.95),
            f"blockage phrase: {blocked[0]!r}",
        )

    if len(text.split()) > _MIN_PROGRESS_WORDS:
        coverage = anchor_coverage(progress, anchor)
        if coverage is not None and coverage > _COVERAGE_THRESHOLD:
            return Verdict(
                Decision.COMPLETE,
                round(coverage, 2),
                f"progress covers {coverage:.0%} of anchor requirements",
            )

    return Verdict(Decision.CONTINUE, 0.5, "no completion or blockage signal")
