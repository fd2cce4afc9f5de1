"""Status transition rules.

``next_status`` is total over ``EventKind``; timers go through ``after_silence``.
Nothing else is allowed to decide an agent's status.
"""

from __future__ import annotations

from typing import Final

from shared.contracts.v1.hook import EventKind

from domain.types import (
    COMPACTING,
    IDLE,
    NOTIFICATION,
    PERMISSION,
    WAITING,
    WORKING,
    Status,
    StatusKind,
)

# Tools that block on a human answer; a Stop while one is open keeps the agent visible.
USER_INTERACTION_TOOLS: Final = frozenset({"AskUserQuestion"})

_WORKING_KINDS: Final = frozenset(
    {
        EventKind.USER_PROMPT_SUBMIT,
        EventKind.PRE_TOOL_USE,
        EventKind.POST_TOOL_USE,
        EventKind.POST_TOOL_USE_FAILURE,
        EventKind.SUBAGENT_START,
        EventKind.SUBAGENT_STOP,
    }
)

_ACTIVITY: Final[dict[Status, float]] = {
    WORKING: 1.0,
    PERMISSION: 0.8,
    NOTIFICATION: 0.5,
    WAITING: 0.1,
    COMPACTING: 0.6,
}


def next_status(
    kind: EventKind, *, awaiting_user: bool = False, notification_type: str | None = None
) -> Status:
    if kind in _WORKING_KINDS:
        return WORKING
    if kind is EventKind.PERMISSION_REQUEST:
        return PERMISSION
    if kind is EventKind.NOTIFICATION:
        return PERMISSION if notification_type == "permission_prompt" else NOTIFICATION
    if kind is EventKind.STOP:
        return WAITING if awaiting_user else IDLE
    if kind is EventKind.PRE_COMPACT:
        return COMPACTING
    # SessionStart, SessionEnd (caller removes the agent) and anything unrecognised
    return IDLE


def after_silence(
    status: Status, elapsed_s: float, idle_timeout_s: float, tool_open: bool = False
) -> Status:
    """Working decays to Idle once nothing has been heard for the inactivity window.

    An agent inside an open tool call stays Working however long the tool runs.
    """
    if tool_open:
        return status
    if status.kind is StatusKind.WORKING and elapsed_s > idle_timeout_s:
        return IDLE
    return status


def activity_value(status: Status) -> float:
    return _ACTIVITY.get(status, 0.0)
