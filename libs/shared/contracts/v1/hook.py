from __future__ import annotations

from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class EventKind(str, Enum):
    """Closed set of life-cycle event kinds an agent can report."""

    SESSION_START = "SessionStart"
    USER_PROMPT_SUBMIT = "UserPromptSubmit"
    PRE_TOOL_USE = "PreToolUse"
    POST_TOOL_USE = "PostToolUse"
    POST_TOOL_USE_FAILURE = "PostToolUseFailure"
    PERMISSION_REQUEST = "PermissionRequest"
    NOTIFICATION = "Notification"
    STOP = "Stop"
    SESSION_END = "SessionEnd"
    PRE_COMPACT = "PreCompact"
    SUBAGENT_START = "SubagentStart"
    SUBAGENT_STOP = "SubagentStop"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, raw: object) -> EventKind:
        if isinstance(raw, EventKind):
            return raw
        try:
            return cls(str(raw))
        except ValueError:
            return cls.UNKNOWN


class HookEvent(BaseModel):
    """One record reported by an agent over the hook socket.

    Unknown fields are ignored and unknown kinds degrade to ``EventKind.UNKNOWN``.
    The legacy names ``pane_id`` and ``event`` are accepted as aliases.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    identity_hint: str = Field(validation_alias=AliasChoices("identity_hint", "pane_id"))
    event_kind: EventKind = Field(validation_alias=AliasChoices("event_kind", "event"))
    timestamp: float
    project: str = ""

    # kind-specific payload
    tool_name: str | None = None
    tool_use_id: str | None = None
    reason: str | None = None
    message: str | None = None
    source: str | None = None
    notification_type: str | None = None
    permission_mode: str | None = None
    context_usage: float | None = None
    session_id: str | None = None
    agent_type: str | None = None
    spawn_key: str | None = None

    @field_validator("identity_hint")
    @classmethod
    def _identity_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identity_hint must not be empty")
        return v

    @field_validator("event_kind", mode="before")
    @classmethod
    def _degrade_unknown_kind(cls, v: object) -> EventKind:
        return EventKind.parse(v)

    @field_validator("context_usage")
    @classmethod
    def _clamp_usage(cls, v: float | None) -> float | None:
        if v is None:
            return None
        return min(max(v, 0.0), 100.0)
