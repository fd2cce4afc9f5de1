from __future__ import annotations

import logging
import os
import uuid
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Final

from ports.progress import PendingTask, ProgressStorePort
from ports.sink import SendInput, SinkCommand, SpawnWorker
from shared.contracts.v1.commands import LoopConfig

from domain.agent.model import LoopState, LoopUpdate, LoopView
from domain.types import Decision, LoopMode

from .judge import (
    PROMISE_COMPLETE_TAG,
    Verdict,
    contains_stop_word,
    has_completion_tag,
    is_planning_complete,
    is_stalled,
    judge,
)

LOG: Final = logging.getLogger("hivewatch.loop")

_RESTARTABLE: Final = frozenset({LoopMode.COMPLETE, LoopMode.STALLED, LoopMode.CANCELLED})


@dataclass(frozen=True)
class LoopOutcome:
    verdict: Verdict
    update: LoopUpdate
    commands: tuple[SinkCommand, ...] = ()
    pending: tuple[tuple[str, LoopConfig], ...] = ()
    problems: tuple[str, ...] = ()  # progress-store failures, surfaced as notices


def _new_spawn_key() -> str:
    return f"spawn-{uuid.uuid4().hex[:12]}"


class LoopOrchestrator:
    """Decides what happens when a looped agent stops.

    Pure decision-making: it never mutates agent state. Results come back as a
    ``LoopOutcome`` that the serial consumer applies to the store and forwards
    to the command sink.
    """

    def __init__(
        self,
        progress: ProgressStorePort,
        *,
        max_workers: int = 3,
        spawn_delay_s: float = 1.0,
        worker_max_iterations: int = 10,
        worker_stop_word: str = "DONE",
        continue_input: str = "continue",
        stall_window: int = 5,
        new_spawn_key: Callable[[], str] = _new_spawn_key,
    ) -> None:
        self.progress: Final = progress
        self.max_workers = max(0, max_workers)
        self.spawn_delay_s = max(0.0, spawn_delay_s)
        self.worker_max_iterations = worker_max_iterations
        self.worker_stop_word = worker_stop_word
        self.continue_input = continue_input
        self.stall_window = stall_window
        self._new_spawn_key = new_spawn_key

    # --- stop handling ----------------------------------------------------------------

    def on_stop(self, view: LoopView) -> LoopOutcome | None:
        loop = view.loop
        if loop.mode is not LoopMode.ACTIVE:
            return None

        iteration = loop.iteration + 1
        problems: list[str] = []
        progress, anchor = self._read_texts(loop.loop_dir, problems)
        verdict = self.evaluate(iteration, loop, view.recent_stop_reasons, progress, anchor)

        commands: list[SinkCommand] = []
        pending: list[tuple[str, LoopConfig]] = []
        dispatched = loop.dispatched
        if verdict.decision is Decision.CONTINUE:
            mode = LoopMode.ACTIVE
            commands.append(SendInput(view.identity, self.continue_input))
            if self._is_planner(view) and loop.loop_dir and is_planning_complete(progress):
                spawns, pending, dispatched = self._fan_out(
                    view, loop.loop_dir, dispatched, problems
                )
                commands.extend(spawns)
        elif verdict.decision is Decision.COMPLETE:
            mode = LoopMode.COMPLETE
        else:
            mode = LoopMode.STALLED

        LOG.info(
            "Loop %s iteration %d/%d -> %s (%s)",
            view.identity,
            iteration,
            loop.max_iterations,
            verdict.decision.value,
            verdict.explanation,
        )
        if loop.loop_dir:
            self._persist(loop.loop_dir, iteration, verdict, view.recent_stop_reasons, problems)

        return LoopOutcome(
            verdict=verdict,
            update=LoopUpdate(view.identity, mode, iteration, dispatched),
            commands=tuple(commands),
            pending=tuple(pending),
            problems=tuple(problems),
        )

    def evaluate(
        self,
        iteration: int,
        loop: LoopState,
        reasons: Sequence[str],
        progress: str,
        anchor: str = "",
    ) -> Verdict:
        """Circuit breakers in priority order, then the judge."""
        if iteration >= loop.max_iterations:
            return Verdict(
                Decision.COMPLETE, 1.0, f"reached max iterations ({loop.max_iterations})"
            )
        if contains_stop_word(progress, loop.stop_word):
            return Verdict(Decision.COMPLETE, 1.0, f"stop word {loop.stop_word!r} found")
        if has_completion_tag(progress):
            return Verdict(Decision.COMPLETE, 1.0, "completion tag found")
        if is_stalled(reasons, self.stall_window):
            return Verdict(
                Decision.STALLED,
                1.0,
                f"last {self.stall_window} stop reasons identical: {reasons[-1]!r}",
            )
        return judge(progress, anchor)

    # --- user commands ------------------------------------------------------------

    def cancel(self, view: LoopView) -> LoopUpdate | None:
        if view.loop.mode is not LoopMode.ACTIVE:
            LOG.info("Cancel ignored for %s: loop is %s", view.identity, view.loop.mode.value)
            return None
        return LoopUpdate(
            view.identity, LoopMode.CANCELLED, view.loop.iteration, view.loop.dispatched
        )

    def restart(self, view: LoopView) -> LoopUpdate | None:
        if view.loop.mode not in _RESTARTABLE:
            LOG.info("Restart ignored for %s: loop is %s", view.identity, view.loop.mode.value)
            return None
        return LoopUpdate(view.identity, LoopMode.ACTIVE, 0, frozenset(), clear_reasons=True)

    # --- fan-out ------------------------------------------------------------------

    @staticmethod
    def _is_planner(view: LoopView) -> bool:
        return view.loop.role == "planner" or view.explicit_role == "planner"

    def _fan_out(
        self,
        view: LoopView,
        loop_dir: str,
        dispatched: frozenset[str],
        problems: list[str],
    ) -> tuple[list[SinkCommand], list[tuple[str, LoopConfig]], frozenset[str]]:
        try:
            tasks = self.progress.pending_tasks(loop_dir)
        except (OSError, ValueError) as ex:
            LOG.warning("Cannot read task queue in %s: %s", loop_dir, ex)
            problems.append(f"cannot read task queue: {ex}")
            return [], [], dispatched
        fresh = [t for t in tasks if t.task_id not in dispatched]
        to_spawn = min(len(fresh), self.max_workers)
        if to_spawn == 0:
            return [], [], dispatched

        commands: list[SinkCommand] = []
        pending: list[tuple[str, LoopConfig]] = []
        cwd = os.path.dirname(os.path.abspath(loop_dir))
        for i, task in enumerate(fresh[:to_spawn]):
            key = self._new_spawn_key()
            worker_dir = os.path.join(loop_dir, "workers", task.task_id)
            commands.append(
                SpawnWorker(
                    spawn_key=key,
                    parent=view.identity,
                    task_id=task.task_id,
                    prompt=self._worker_prompt(task, worker_dir),
                    cwd=cwd,
                    delay_s=self.spawn_delay_s if i else 0.0,
                )
            )
            pending.append(
                (
                    key,
                    LoopConfig(
                        max_iterations=self.worker_max_iterations,
                        stop_word=self.worker_stop_word,
                        role="worker",
                        loop_dir=worker_dir,
                        task_id=task.task_id,
                    ),
                )
            )
            self._append(
                loop_dir, f"spawn {key} task={task.task_id} parent={view.identity}", problems
            )
            self._append(worker_dir, f"assigned {task.task_id}: {task.description}", problems)

        LOG.info("Planner %s fanning out %d worker(s)", view.identity, to_spawn)
        spawned = frozenset(t.task_id for t in fresh[:to_spawn])
        return commands, pending, dispatched | spawned

    @staticmethod
    def _worker_prompt(task: PendingTask, worker_dir: str) -> str:
        return (
            f"[{task.task_id}] {task.description}\n"
            f"Keep notes in {os.path.join(worker_dir, 'progress.md')} and write "
            f"{PROMISE_COMPLETE_TAG} there when the task is done."
        )

    # --- persisted state ------------------------------------------------------------

    def _read_texts(self, loop_dir: str | None, problems: list[str]) -> tuple[str, str]:
        if not loop_dir:
            return "", ""
        try:
            return self.progress.read_progress(loop_dir), self.progress.read_anchor(loop_dir)
        except (OSError, ValueError) as ex:
            LOG.warning("Cannot read loop state in %s: %s", loop_dir, ex)
            problems.append(f"cannot read loop state: {ex}")
            return "", ""

    def _persist(
        self,
        loop_dir: str,
        iteration: int,
        verdict: Verdict,
        reasons: Sequence[str],
        problems: list[str],
    ) -> None:
        try:
            self.progress.record_iteration(loop_dir, iteration, verdict.decision.value)
            if verdict.decision is Decision.STALLED and reasons:
                if self.progress.record_error(loop_dir, reasons[-1]):
                    LOG.info("Recurring stall reason promoted to guardrail in %s", loop_dir)
        except (OSError, ValueError) as ex:
            LOG.warning("Cannot update loop state in %s: %s", loop_dir, ex)
            problems.append(f"cannot update loop state: {ex}")
        self._append(
            loop_dir,
            f"iteration {iteration}: {verdict.decision.value} ({verdict.explanation})",
            problems,
        )

    def _append(self, loop_dir: str, line: str, problems: list[str]) -> None:
        try:
            self.progress.append_history(loop_dir, line)
        except (OSError, ValueError) as ex:
            LOG.warning("Cannot append history in %s: %s", loop_dir, ex)
            problems.append(f"cannot append history: {ex}")
