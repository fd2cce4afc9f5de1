from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict

StatusName = Literal["idle", "working", "attention", "compacting", "orphaned"]
AttentionName = Literal["permission", "notification", "waiting"]
LoopStateName = Literal["none", "active", "stalled", "complete", "cancelled"]
ObservedRoleName = Literal["planner", "worker", "reviewer", "general"]


class AgentView(BaseModel):
    """Immutable, point-in-time copy of one agent for display consumers."""

    model_config = ConfigDict(frozen=True)

    api: Literal["v1"] = "v1"
    identity: str
    project: str
    status: StatusName
    attention: AttentionName | None = None
    last_event_at: float
    last_event: str | None = None
    pending_tool: str | None = None
    in_flight_tools: int = 0
    last_latency_ms: float | None = None
    avg_latency_ms: float | None = None
    tool_calls: int = 0
    activity: tuple[float, ...] = ()
    recent_stop_reasons: tuple[str, ...] = ()
    loop_state: LoopStateName = "none"
    loop_iteration: int = 0
    loop_max_iterations: int | None = None
    loop_role: str | None = None
    explicit_role: str | None = None
    observed_role: ObservedRoleName = "general"
    context_usage: float | None = None
    permission_mode: str | None = None
    session_id: str | None = None
    last_notice: str | None = None


class Notice(BaseModel):
    model_config = ConfigDict(frozen=True)

    at: float
    message: str
    identity: str | None = None
    severity: Literal["info", "warning", "error"] = "warning"


class Snapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    api: Literal["v1"] = "v1"
    version: int
    agents: tuple[AgentView, ...]
    counts: dict[str, int]
    notices: tuple[Notice, ...] = ()
