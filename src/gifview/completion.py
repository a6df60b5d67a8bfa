"""Batch completion tracking on top of a shared, continuously draining queue.

The queue knows nothing about logical batches. A tracker snapshots the queue's
lifetime execution counter before a batch is submitted and resolves the
batch's future the next time the queue is fully drained (empty backlog,
nothing executing) with at least one execution since that snapshot.

Only one batch is tracked per queue at a time: arming a new batch supersedes
the previous one, whose future is cancelled and whose callback never runs.
The queued work itself is unaffected.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from concurrent.futures import Future
from contextlib import contextmanager
from dataclasses import dataclass, field

import structlog

from gifview.models import QueueState
from gifview.queue import RateLimitedQueue

CompletionCallback = Callable[[int, int], object]


@dataclass(frozen=True)
class BatchCompletion:
    queued: int
    processed: int


@dataclass
class Batch:
    """Handle yielded while a batch is being submitted."""

    start_execution_count: int
    on_complete: CompletionCallback | None = None
    queued: int = 0
    future: Future[BatchCompletion] = field(default_factory=Future)


@dataclass
class _ArmedJob:
    batch: Batch
    armed_version: int


class CompletionTracker:
    def __init__(self, queue: RateLimitedQueue, log: structlog.stdlib.BoundLogger | None = None) -> None:
        self._queue = queue
        self._lock = threading.Lock()
        self._job: _ArmedJob | None = None
        self._log = (log or structlog.get_logger(__name__)).bind(queue=queue.name)
        queue.add_listener(self._on_state)

    @property
    def armed(self) -> bool:
        with self._lock:
            return self._job is not None

    @contextmanager
    def batch(self, on_complete: CompletionCallback | None = None) -> Iterator[Batch]:
        """Track the items enqueued inside the block as one batch.

        The execution counter is read on entry; the tracker is armed on normal
        exit. If the block raises, nothing is armed and the future is
        cancelled. A batch that ended up with zero accepted items is never
        armed either.
        """
        batch = Batch(start_execution_count=self._queue.status().execution_count, on_complete=on_complete)
        try:
            yield batch
        except BaseException:
            batch.future.cancel()
            raise

        if batch.queued == 0:
            batch.future.cancel()
            return
        self._arm(batch)

    def disarm(self) -> None:
        """Abandon the outstanding batch, if any."""
        with self._lock:
            job, self._job = self._job, None
        if job is not None:
            job.batch.future.cancel()

    def _arm(self, batch: Batch) -> None:
        # Snapshot under the lock: a drain emitted after it waits for the job to be installed
        with self._lock:
            state = self._queue.status()
            previous, self._job = self._job, _ArmedJob(batch=batch, armed_version=state.version)
        if previous is not None:
            self._log.warning(
                "completion.superseded",
                queued=previous.batch.queued,
                start_execution_count=previous.batch.start_execution_count,
            )
            previous.batch.future.cancel()
        # The batch may already have drained while it was being submitted
        self._check(state, include_armed_version=True)

    def _on_state(self, state: QueueState) -> None:
        self._check(state, include_armed_version=False)

    def _check(self, state: QueueState, *, include_armed_version: bool) -> None:
        with self._lock:
            job = self._job
            if job is None or state.size != 0 or state.active:
                return
            # Snapshots taken before arming are stale
            if state.version < job.armed_version or (state.version == job.armed_version and not include_armed_version):
                return
            processed = state.execution_count - job.batch.start_execution_count
            if processed <= 0:
                return
            # Cleared before the callback runs so a re-entrant event cannot fire it twice
            self._job = None

        self._fire(job.batch, processed)

    def _fire(self, batch: Batch, processed: int) -> None:
        self._log.info("completion.batch_done", queued=batch.queued, processed=processed)
        if batch.on_complete is not None:
            try:
                batch.on_complete(batch.queued, processed)
            except Exception:
                self._log.exception("completion.callback_failed")
        # Resolved after the callback so waiters observe its effects
        if not batch.future.cancelled():
            batch.future.set_result(BatchCompletion(queued=batch.queued, processed=processed))
