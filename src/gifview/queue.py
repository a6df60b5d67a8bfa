"""Rate-limited FIFO work queue served by a single worker thread.

Each queue serialises calls to its handler with a fixed pause after every
item (success or failure). Items that arrive while the backlog is at
``max_size`` are rejected and counted, never blocked on. Handler failures are
logged and dropped; nothing is requeued.
"""

from __future__ import annotations

import threading
from collections import deque
from collections.abc import Callable
from typing import Generic, TypeVar

import structlog

from gifview.models import QueueState

T = TypeVar("T")

StateListener = Callable[[QueueState], None]


class RateLimitedQueue(Generic[T]):
    def __init__(
        self,
        handler: Callable[[T], object],
        *,
        name: str,
        wait_seconds: float,
        max_size: int,
        on_reject: Callable[[T], None] | None = None,
        started: bool = True,
        log: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self.name = name
        self.wait_seconds = max(wait_seconds, 0.0)
        self.max_size = max(max_size, 0)
        self._handler = handler
        self._on_reject = on_reject
        self._log = (log or structlog.get_logger(__name__)).bind(queue=name)

        self._items: deque[T] = deque()
        self._cond = threading.Condition()
        self._listeners: list[StateListener] = []
        self._running = False
        self._active = False
        self._execution_count = 0
        self._rejection_count = 0
        self._version = 0
        self._thread: threading.Thread | None = None

        if started:
            self.start()

    # -- Lifecycle -------------------------------------------------------------

    def start(self) -> None:
        with self._cond:
            if self._running:
                return
            self._running = True
            self._version += 1
            self._thread = threading.Thread(target=self._run, name=f"queue-{self.name}", daemon=True)
            self._thread.start()
        self._log.info("queue.started", wait_seconds=self.wait_seconds, max_size=self.max_size)

    def stop(self, timeout: float | None = None) -> None:
        """Stop after the current item; pending items stay in the backlog."""
        with self._cond:
            if not self._running:
                return
            self._running = False
            self._version += 1
            self._cond.notify_all()
            thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._log.info("queue.stopped", pending=self.status().size)

    # -- Producer side ---------------------------------------------------------

    def enqueue(self, item: T) -> bool:
        """Add an item to the backlog. Returns False when it was rejected."""
        with self._cond:
            if len(self._items) >= self.max_size:
                self._rejection_count += 1
                self._version += 1
                accepted = False
            else:
                self._items.append(item)
                self._version += 1
                self._cond.notify_all()
                accepted = True
            state = self._snapshot()

        if not accepted:
            self._log.warning("queue.rejected", rejection_count=state.rejection_count, item=repr(item)[:200])
            if self._on_reject is not None:
                try:
                    self._on_reject(item)
                except Exception:
                    self._log.exception("queue.on_reject_failed")
        self._emit(state)
        return accepted

    # -- Observation -----------------------------------------------------------

    def add_listener(self, listener: StateListener) -> None:
        """Register an observer called on every size/execution-count transition."""
        with self._cond:
            self._listeners.append(listener)

    def status(self) -> QueueState:
        with self._cond:
            return self._snapshot()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until the backlog is empty and no item is executing."""
        with self._cond:
            return self._cond.wait_for(lambda: not self._items and not self._active, timeout=timeout)

    def _snapshot(self) -> QueueState:
        size = len(self._items)
        return QueueState(
            size=size,
            is_running=self._running,
            execution_count=self._execution_count,
            rejection_count=self._rejection_count,
            active=self._active,
            is_empty=size == 0,
            is_full=size >= self.max_size,
            version=self._version,
        )

    def _emit(self, state: QueueState) -> None:
        self._log.debug("queue.status", size=state.size, processed=state.execution_count)
        with self._cond:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(state)
            except Exception:
                self._log.exception("queue.listener_failed")

    # -- Worker ----------------------------------------------------------------

    def _run(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: not self._running or bool(self._items))
                if not self._running:
                    return
                item = self._items.popleft()
                self._execution_count += 1
                self._active = True
                self._version += 1
                started = self._snapshot()
            self._emit(started)

            try:
                self._handler(item)
            except Exception:
                self._log.exception("queue.item_failed", item=repr(item)[:200])

            with self._cond:
                self._active = False
                self._version += 1
                finished = self._snapshot()
                self._cond.notify_all()
            self._emit(finished)

            if self.wait_seconds > 0:
                with self._cond:
                    # Pause applies after failures too; stop() cuts it short
                    self._cond.wait_for(lambda: not self._running, timeout=self.wait_seconds)
