from __future__ import annotations

import pytest
from domain.agent import activity_value, after_silence, infer_role, next_status
from domain.types import (
    COMPACTING,
    IDLE,
    NOTIFICATION,
    ORPHANED,
    PERMISSION,
    WAITING,
    WORKING,
    ObservedRole,
)
from shared.contracts.v1.hook import EventKind


@pytest.mark.parametrize(
    "kind",
    [
        EventKind.USER_PROMPT_SUBMIT,
        EventKind.PRE_TOOL_USE,
        EventKind.POST_TOOL_USE,
        EventKind.POST_TOOL_USE_FAILURE,
        EventKind.SUBAGENT_START,
        EventKind.SUBAGENT_STOP,
    ],
)
def test_activity_kinds_mean_working(kind: EventKind):
    assert next_status(kind) == WORKING


def test_attention_kinds():
    assert next_status(EventKind.PERMISSION_REQUEST) == PERMISSION
    assert next_status(EventKind.NOTIFICATION) == NOTIFICATION
    assert next_status(EventKind.NOTIFICATION, notification_type="permission_prompt") == PERMISSION


def test_stop_waits_while_a_question_is_open():
    assert next_status(EventKind.STOP) == IDLE
    assert next_status(EventKind.STOP, awaiting_user=True) == WAITING


def test_every_kind_has_a_status():
    for kind in EventKind:
        assert next_status(kind) is not None
    assert next_status(EventKind.PRE_COMPACT) == COMPACTING
    assert next_status(EventKind.SESSION_START) == IDLE
    assert next_status(EventKind.UNKNOWN) == IDLE


def test_silence_only_decays_working():
    assert after_silence(WORKING, 61.0, 60.0) == IDLE
    assert after_silence(WORKING, 60.0, 60.0) == WORKING
    for status in (PERMISSION, NOTIFICATION, WAITING, COMPACTING, ORPHANED, IDLE):
        assert after_silence(status, 10_000.0, 60.0) == status


def test_open_tool_call_never_decays():
    assert after_silence(WORKING, 600.0, 60.0, tool_open=True) == WORKING


def test_status_str_and_bucket():
    assert str(WAITING) == "attention/waiting"
    assert WAITING.bucket == "attention"
    assert str(ORPHANED) == "orphaned"


def test_activity_values():
    assert activity_value(WORKING) == 1.0
    assert activity_value(IDLE) == 0.0
    assert 0.0 < activity_value(WAITING) < activity_value(PERMISSION)


def test_role_inference():
    assert infer_role([]) is ObservedRole.GENERAL
    assert infer_role(["Read", "Grep", "Glob"]) is ObservedRole.PLANNER
    assert infer_role(["Read", "Edit"]) is ObservedRole.WORKER
    assert infer_role(["Edit", "Read", "Grep"]) is ObservedRole.REVIEWER
    assert infer_role(["Edit", "Read"]) is ObservedRole.WORKER
    assert infer_role(["Read", "Mystery"]) is ObservedRole.GENERAL
