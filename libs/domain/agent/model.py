from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Final

from shared.contracts.v1.commands import LoopConfig
from shared.contracts.v1.snapshot import AgentView

from domain.types import IDLE, LoopMode, ObservedRole, Status

ACTIVITY_CAPACITY: Final = 60
STOP_REASON_CAPACITY: Final = 5
TOOL_HISTORY_CAPACITY: Final = 10


@dataclass
class LoopState:
    mode: LoopMode = LoopMode.NONE
    iteration: int = 0
    max_iterations: int = 0
    stop_word: str = ""
    role: str = "auto"
    loop_dir: str | None = None
    task_id: str | None = None
    dispatched: frozenset[str] = frozenset()  # task ids already fanned out

    @classmethod
    def from_config(cls, cfg: LoopConfig) -> LoopState:
        return cls(
            mode=LoopMode.ACTIVE,
            max_iterations=cfg.max_iterations,
            stop_word=cfg.stop_word,
            role=cfg.role,
            loop_dir=cfg.loop_dir,
            task_id=cfg.task_id,
        )


@dataclass(frozen=True)
class LoopView:
    """What the loop orchestrator is allowed to see of an agent."""

    identity: str
    project: str
    loop: LoopState
    recent_stop_reasons: tuple[str, ...]
    explicit_role: str | None
    observed_role: ObservedRole


@dataclass(frozen=True)
class LoopUpdate:
    """Requested change to an agent's loop fields, applied by the store."""

    identity: str
    mode: LoopMode
    iteration: int
    dispatched: frozenset[str] = frozenset()
    clear_reasons: bool = False


@dataclass
class Agent:
    identity: str
    project: str
    seq: int  # insertion order, breaks eviction ties
    last_event_at: float
    status: Status = IDLE
    last_event: str | None = None
    pending_tool: str | None = None
    tool_correlation: dict[str, float] = field(default_factory=dict)
    awaiting_user: str | None = None  # correlation id (or tool name) of a blocking question
    last_latency_ms: float | None = None
    avg_latency_ms: float | None = None
    tool_calls: int = 0
    activity: deque[float] = field(default_factory=lambda: deque(maxlen=ACTIVITY_CAPACITY))
    recent_stop_reasons: deque[str] = field(
        default_factory=lambda: deque(maxlen=STOP_REASON_CAPACITY)
    )
    tool_history: deque[str] = field(default_factory=lambda: deque(maxlen=TOOL_HISTORY_CAPACITY))
    loop: LoopState = field(default_factory=LoopState)
    explicit_role: str | None = None
    observed_role: ObservedRole = ObservedRole.GENERAL
    session_id: str | None = None
    permission_mode: str | None = None
    context_usage: float | None = None
    last_notice: str | None = None

    def record_latency(self, latency_ms: float) -> None:
        self.tool_calls += 1
        self.last_latency_ms = latency_ms
        if self.avg_latency_ms is None:
            self.avg_latency_ms = latency_ms
        else:
            n = self.tool_calls
            self.avg_latency_ms = (self.avg_latency_ms * (n - 1) + latency_ms) / n

    def loop_view(self) -> LoopView:
        return LoopView(
            identity=self.identity,
            project=self.project,
            loop=LoopState(
                mode=self.loop.mode,
                iteration=self.loop.iteration,
                max_iterations=self.loop.max_iterations,
                stop_word=self.loop.stop_word,
                role=self.loop.role,
                loop_dir=self.loop.loop_dir,
                task_id=self.loop.task_id,
                dispatched=self.loop.dispatched,
            ),
            recent_stop_reasons=tuple(self.recent_stop_reasons),
            explicit_role=self.explicit_role,
            observed_role=self.observed_role,
        )

    def view(self) -> AgentView:
        looped = self.loop.mode is not LoopMode.NONE
        return AgentView(
            identity=self.identity,
            project=self.project,
            status=self.status.kind.value,
            attention=self.status.attention.value if self.status.attention else None,
            last_event_at=self.last_event_at,
            last_event=self.last_event,
            pending_tool=self.pending_tool,
            in_flight_tools=len(self.tool_correlation),
            last_latency_ms=self.last_latency_ms,
            avg_latency_ms=self.avg_latency_ms,
            tool_calls=self.tool_calls,
            activity=tuple(self.activity),
            recent_stop_reasons=tuple(self.recent_stop_reasons),
            loop_state=self.loop.mode.value,
            loop_iteration=self.loop.iteration,
            loop_max_iterations=self.loop.max_iterations if looped else None,
            loop_role=self.loop.role if looped else None,
            explicit_role=self.explicit_role,
            observed_role=self.observed_role.value,
            context_usage=self.context_usage,
            permission_mode=self.permission_mode,
            session_id=self.session_id,
            last_notice=self.last_notice,
        )
