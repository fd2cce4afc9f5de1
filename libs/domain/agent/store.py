from __future__ import annotations

import logging
from collections import deque
from typing import Final

from ports.telemetry import MetricsPort
from shared.contracts.v1.commands import LoopConfig
from shared.contracts.v1.hook import EventKind, HookEvent
from shared.contracts.v1.snapshot import AgentView, Notice, Snapshot

from domain.loop.pending import PendingConfigs
from domain.types import ORPHANED, LoopMode, Status, StatusKind

from .model import Agent, LoopState, LoopUpdate, LoopView
from .roles import infer_role
from .status import USER_INTERACTION_TOOLS, activity_value, after_silence, next_status

LOG: Final = logging.getLogger("hivewatch.store")

EVENT_LOG_CAPACITY: Final = 50
NOTICE_CAPACITY: Final = 50

_CLOSES_TOOL: Final = frozenset({EventKind.POST_TOOL_USE, EventKind.POST_TOOL_USE_FAILURE})


class AgentStore:
    """Single-writer table of observed agents.

    Every mutating method must be called from the one serial consumer. Reads
    (``snapshot``, ``status_counts``) copy what they return and may be called
    between events. Status changes only happen in ``_transition``.
    """

    def __init__(
        self,
        *,
        max_agents: int = 500,
        idle_timeout_s: float = 60.0,
        stale_timeout_s: float = 300.0,
        pending_timeout_s: float = 300.0,
        pending: PendingConfigs | None = None,
        metrics: MetricsPort | None = None,
    ) -> None:
        if max_agents < 1:
            raise ValueError("max_agents must be >= 1")
        self.max_agents = max_agents
        self.idle_timeout_s = idle_timeout_s
        self.stale_timeout_s = stale_timeout_s
        self.pending_timeout_s = pending_timeout_s
        self.pending = pending if pending is not None else PendingConfigs()
        self.metrics = metrics
        self._agents: dict[str, Agent] = {}
        self._counts: dict[str, int] = {k.value: 0 for k in StatusKind}
        self._seq = 0
        self._version = 0
        self._events: deque[str] = deque(maxlen=EVENT_LOG_CAPACITY)
        self._notices: deque[Notice] = deque(maxlen=NOTICE_CAPACITY)

    # --- reads ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, identity: object) -> bool:
        return identity in self._agents

    @property
    def version(self) -> int:
        """Bumped on every mutation; lets consumers skip unchanged snapshots."""
        return self._version

    def get(self, identity: str) -> AgentView | None:
        agent = self._agents.get(identity)
        return agent.view() if agent else None

    def loop_view(self, identity: str) -> LoopView | None:
        agent = self._agents.get(identity)
        return agent.loop_view() if agent else None

    def identities(self) -> list[str]:
        return list(self._agents)

    def status_counts(self) -> dict[str, int]:
        return dict(self._counts)

    def scan_counts(self) -> dict[str, int]:
        """Full linear recount; used to check the cached counts."""
        out = {k.value: 0 for k in StatusKind}
        for agent in self._agents.values():
            out[agent.status.bucket] += 1
        return out

    def recent_events(self) -> list[str]:
        return list(self._events)

    def snapshot(self) -> Snapshot:
        agents = list(self._agents.values())
        return Snapshot(
            version=self._version,
            agents=tuple(a.view() for a in agents),
            counts=dict(self._counts),
            notices=tuple(self._notices),
        )

    # --- event application --------------------------------------------------------

    def apply(self, event: HookEvent, received_at: float) -> None:
        identity = event.identity_hint
        kind = event.event_kind
        self._version += 1
        self._events.append(f"{identity} {kind.value}")

        if kind is EventKind.SESSION_END:
            if identity in self._agents:
                self._remove(identity, "session ended")
            return

        agent = self._agents.get(identity)
        if agent is None:
            agent = self._admit(event, received_at)
        if kind is EventKind.UNKNOWN:
            LOG.debug("Unknown event kind from %s; treating as idle", identity)

        self._absorb_metadata(agent, event)

        if kind is EventKind.PRE_TOOL_USE:
            self._open_tool(agent, event, received_at)
        elif kind in _CLOSES_TOOL:
            self._close_tool(agent, event, received_at)
        elif kind is EventKind.STOP:
            if event.reason:
                agent.recent_stop_reasons.append(event.reason)
            # the turn is over; completions that never arrived will not
            if agent.awaiting_user is None:
                agent.tool_correlation.clear()
                agent.pending_tool = None

        agent.last_event = kind.value
        agent.last_event_at = received_at
        self._transition(
            agent,
            next_status(
                kind,
                awaiting_user=agent.awaiting_user is not None,
                notification_type=event.notification_type,
            ),
        )
        agent.activity.append(activity_value(agent.status))

    def tick(self, now: float) -> None:
        """Logic tick: idle decay, stale removal and pending-config expiry."""
        changed = False
        for agent in list(self._agents.values()):
            elapsed = now - agent.last_event_at
            if elapsed > self.stale_timeout_s:
                self._remove(agent.identity, f"no events for {elapsed:.0f}s")
                changed = True
                continue
            decayed = after_silence(
                agent.status,
                elapsed,
                self.idle_timeout_s,
                tool_open=agent.pending_tool is not None or bool(agent.tool_correlation),
            )
            if decayed != agent.status:
                self._transition(agent, decayed)
                agent.activity.append(activity_value(decayed))
                changed = True
        if self.pending.expire(now, self.pending_timeout_s):
            changed = True
        if changed:
            self._version += 1

    def mark_orphaned(self, identity: str) -> bool:
        """Reconciliation found the agent's handle gone; no more events will arrive."""
        agent = self._agents.get(identity)
        if agent is None or agent.status.kind is StatusKind.ORPHANED:
            return False
        LOG.info("Agent %s lost its session handle; marking orphaned", identity)
        self._transition(agent, ORPHANED)
        self._version += 1
        return True

    def apply_loop_update(self, update: LoopUpdate) -> None:
        agent = self._agents.get(update.identity)
        if agent is None:
            LOG.debug("Loop update for departed agent %s ignored", update.identity)
            return
        agent.loop.mode = update.mode
        agent.loop.iteration = update.iteration
        agent.loop.dispatched = update.dispatched
        if update.clear_reasons:
            agent.recent_stop_reasons.clear()
        self._version += 1

    def attach_loop(self, identity: str, config: LoopConfig) -> bool:
        agent = self._agents.get(identity)
        if agent is None:
            return False
        self._attach(agent, config)
        self._version += 1
        return True

    def note(self, notice: Notice) -> None:
        self._notices.append(notice)
        if notice.identity is not None:
            agent = self._agents.get(notice.identity)
            if agent is not None:
                agent.last_notice = notice.message
        self._version += 1

    # --- internals ----------------------------------------------------------------

    def _admit(self, event: HookEvent, received_at: float) -> Agent:
        while len(self._agents) >= self.max_agents:
            self._evict_one()
        self._seq += 1
        agent = Agent(
            identity=event.identity_hint,
            project=event.project,
            seq=self._seq,
            last_event_at=received_at,
        )
        self._agents[agent.identity] = agent
        self._counts[agent.status.bucket] += 1
        config = self.pending.claim(agent.identity, event.spawn_key)
        if config is not None:
            self._attach(agent, config)
        LOG.debug("Tracking agent %s (%s)", agent.identity, agent.project or "-")
        return agent

    def _attach(self, agent: Agent, config: LoopConfig) -> None:
        agent.loop = LoopState.from_config(config)
        agent.recent_stop_reasons.clear()
        if config.role != "auto":
            agent.explicit_role = config.role
        LOG.info(
            "Loop mode on %s: max=%d stop_word=%r role=%s",
            agent.identity,
            config.max_iterations,
            config.stop_word,
            config.role,
        )

    def _evict_one(self) -> None:
        idle = [a for a in self._agents.values() if a.status.kind is StatusKind.IDLE]
        pool = idle or list(self._agents.values())
        victim = min(pool, key=lambda a: (a.last_event_at, a.seq))
        self._remove(victim.identity, "evicted (store at capacity)")

    def _remove(self, identity: str, why: str) -> None:
        agent = self._agents.pop(identity)
        self._counts[agent.status.bucket] -= 1
        if agent.loop.mode is LoopMode.ACTIVE:
            LOG.warning("Removing %s with an active loop: %s", identity, why)
        else:
            LOG.info("Removing %s: %s", identity, why)

    def _transition(self, agent: Agent, status: Status) -> None:
        if status == agent.status:
            return
        self._counts[agent.status.bucket] -= 1
        self._counts[status.bucket] += 1
        agent.status = status

    def _absorb_metadata(self, agent: Agent, event: HookEvent) -> None:
        if event.project:
            agent.project = event.project
        if event.session_id:
            agent.session_id = event.session_id
        if event.permission_mode:
            agent.permission_mode = event.permission_mode
        if event.context_usage is not None:
            agent.context_usage = event.context_usage
        if event.agent_type:
            agent.explicit_role = event.agent_type

    def _open_tool(self, agent: Agent, event: HookEvent, received_at: float) -> None:
        agent.pending_tool = event.tool_name
        if event.tool_use_id:
            agent.tool_correlation[event.tool_use_id] = received_at
        if event.tool_name:
            agent.tool_history.append(event.tool_name)
            agent.observed_role = infer_role(agent.tool_history)
            if event.tool_name in USER_INTERACTION_TOOLS:
                agent.awaiting_user = event.tool_use_id or event.tool_name

    def _close_tool(self, agent: Agent, event: HookEvent, received_at: float) -> None:
        cid = event.tool_use_id
        if cid:
            started = agent.tool_correlation.pop(cid, None)
            if started is None:
                LOG.debug("Unmatched tool completion %s on %s", cid, agent.identity)
            else:
                latency_ms = max(0.0, (received_at - started) * 1000.0)
                agent.record_latency(latency_ms)
                if self.metrics is not None:
                    self.metrics.observe(
                        "tool_latency_ms", latency_ms, tool=event.tool_name or "unknown"
                    )
        agent.pending_tool = None
        if agent.awaiting_user is not None and (
            agent.awaiting_user == cid
            or (not cid and event.tool_name in USER_INTERACTION_TOOLS)
        ):
            agent.awaiting_user = None

