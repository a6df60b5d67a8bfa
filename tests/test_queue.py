"""Tests for the rate-limited queue."""

from __future__ import annotations

import threading
import time

from gifview.queue import RateLimitedQueue


def _queue(handler, **kwargs):
    kwargs.setdefault("name", "test")
    kwargs.setdefault("wait_seconds", 0)
    kwargs.setdefault("max_size", 10)
    return RateLimitedQueue(handler, **kwargs)


class TestRateLimitedQueue:
    def test_processes_items_in_fifo_order(self):
        seen = []
        q = _queue(seen.append)
        for i in range(5):
            assert q.enqueue(i)

        assert q.wait_until_idle(timeout=5)
        assert seen == [0, 1, 2, 3, 4]
        assert q.status().execution_count == 5
        q.stop()

    def test_rejects_when_backlog_is_full(self):
        rejected = []
        q = _queue(lambda item: None, max_size=2, started=False, on_reject=rejected.append)

        assert q.enqueue("a")
        assert q.enqueue("b")
        assert not q.enqueue("c")

        state = q.status()
        assert state.size == 2
        assert state.rejection_count == 1
        assert state.is_full
        assert rejected == ["c"]

    def test_size_never_exceeds_max_size(self):
        q = _queue(lambda item: None, max_size=3, started=False)
        sizes = []
        for i in range(10):
            q.enqueue(i)
            sizes.append(q.status().size)

        assert max(sizes) == 3
        assert q.status().rejection_count == 7

    def test_handler_failure_does_not_stop_worker(self):
        seen = []

        def handler(item):
            if item == "boom":
                raise RuntimeError("bad item")
            seen.append(item)

        q = _queue(handler)
        q.enqueue("boom")
        q.enqueue("ok")

        assert q.wait_until_idle(timeout=5)
        assert seen == ["ok"]
        assert q.status().execution_count == 2
        q.stop()

    def test_waits_between_item_starts(self):
        starts = []
        q = _queue(lambda item: starts.append(time.monotonic()), wait_seconds=0.2)
        for i in range(3):
            q.enqueue(i)

        deadline = time.monotonic() + 5
        while len(starts) < 3 and time.monotonic() < deadline:
            time.sleep(0.02)
        q.stop()

        assert len(starts) == 3
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert all(gap >= 0.19 for gap in gaps)

    def test_execution_counted_when_item_starts(self):
        started = threading.Event()
        release = threading.Event()

        def handler(item):
            started.set()
            release.wait(5)

        q = _queue(handler)
        q.enqueue("slow")
        assert started.wait(5)

        state = q.status()
        assert state.execution_count == 1
        assert state.active
        assert state.size == 0
        assert not q.wait_until_idle(timeout=0.05)

        release.set()
        assert q.wait_until_idle(timeout=5)
        assert not q.status().active
        q.stop()

    def test_listeners_see_every_transition(self):
        states = []
        q = _queue(lambda item: None, started=False)
        q.add_listener(states.append)

        q.enqueue("x")
        q.start()
        assert q.wait_until_idle(timeout=5)
        q.stop()

        assert states[0].size == 1
        assert any(s.active and s.execution_count == 1 for s in states)
        assert any(not s.active and s.execution_count == 1 and s.size == 0 for s in states)
        versions = [s.version for s in states]
        assert len(set(versions)) == len(versions)

    def test_stop_keeps_pending_items(self):
        q = _queue(lambda item: None, started=False)
        q.enqueue("pending")

        state = q.status()
        assert not state.is_running
        assert state.size == 1
        assert not state.is_empty
