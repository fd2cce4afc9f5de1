from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Final

from ports.progress import PendingTask, ProgressStorePort

LOG: Final = logging.getLogger("hivewatch.progress")


class BackgroundProgressStore(ProgressStorePort):
    """Keeps progress-file writes off the event loop.

    Reads go straight to the wrapped store (they are size-bounded there).
    Writes are queued on one worker thread, so they land in submission order.
    Write failures are logged; ``record_error`` cannot know the outcome yet
    and always answers False, logging the promotion when it happens.
    """

    def __init__(self, inner: ProgressStorePort) -> None:
        self.inner: Final = inner
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hivewatch-progress")

    def read_progress(self, loop_dir: str) -> str:
        return self.inner.read_progress(loop_dir)

    def read_anchor(self, loop_dir: str) -> str:
        return self.inner.read_anchor(loop_dir)

    def pending_tasks(self, loop_dir: str) -> list[PendingTask]:
        return self.inner.pending_tasks(loop_dir)

    def append_history(self, loop_dir: str, line: str) -> None:
        self._later("append history", loop_dir, self.inner.append_history, loop_dir, line)

    def record_iteration(self, loop_dir: str, iteration: int, decision: str) -> None:
        self._later(
            "record iteration", loop_dir, self.inner.record_iteration, loop_dir, iteration, decision
        )

    def record_error(self, loop_dir: str, pattern: str) -> bool:
        fut = self._later("record error", loop_dir, self.inner.record_error, loop_dir, pattern)

        def promoted(f: Future[Any]) -> None:
            if not f.cancelled() and f.exception() is None and f.result():
                LOG.info("Recurring error %r promoted to guardrail in %s", pattern, loop_dir)

        fut.add_done_callback(promoted)
        return False

    def flush(self) -> None:
        """Wait for every write queued so far."""
        self._pool.submit(lambda: None).result()

    def close(self) -> None:
        self._pool.shutdown(wait=True)

    def _later(self, what: str, loop_dir: str, fn: Callable[..., Any], *args: Any) -> Future[Any]:
        fut = self._pool.submit(fn, *args)

        def report(f: Future[Any]) -> None:
            if f.cancelled():
                return
            ex = f.exception()
            if ex is not None:
                LOG.warning("Cannot %s in %s: %s", what, loop_dir, ex)

        fut.add_done_callback(report)
        return fut
