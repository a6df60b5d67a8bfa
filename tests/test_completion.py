"""Tests for batch completion tracking."""

from __future__ import annotations

import threading

import pytest

from gifview.completion import BatchCompletion, CompletionTracker
from gifview.queue import RateLimitedQueue


def _queue(handler=lambda item: None, **kwargs):
    kwargs.setdefault("max_size", 10)
    return RateLimitedQueue(handler, name="test", wait_seconds=0, **kwargs)


class TestCompletionTracker:
    def test_fires_once_when_batch_drains(self):
        q = _queue()
        tracker = CompletionTracker(q)
        calls = []
        fired = threading.Event()

        def on_complete(queued, processed):
            calls.append((queued, processed))
            fired.set()

        with tracker.batch(on_complete) as batch:
            for i in range(3):
                if q.enqueue(i):
                    batch.queued += 1

        assert batch.future.result(timeout=5) == BatchCompletion(queued=3, processed=3)
        assert fired.wait(5)
        assert q.wait_until_idle(timeout=5)
        assert calls == [(3, 3)]
        assert not tracker.armed
        q.stop()

    def test_fires_when_last_item_finishes_while_arming(self):
        started = threading.Event()
        release = threading.Event()
        drained_seen = threading.Event()

        def handler(item):
            started.set()
            release.wait(5)

        q = _queue(handler)
        tracker = CompletionTracker(q)
        q.add_listener(lambda s: drained_seen.set() if s.size == 0 and not s.active else None)
        real_status = q.status

        def status_then_drain():
            # Snapshot taken with the item still running, then let it finish
            snapshot = real_status()
            release.set()
            drained_seen.wait(0.5)
            return snapshot

        with tracker.batch() as batch:
            q.enqueue("only")
            batch.queued += 1
            assert started.wait(5)
            q.status = status_then_drain

        assert batch.future.result(timeout=5) == BatchCompletion(queued=1, processed=1)
        q.status = real_status
        q.stop()

    def test_fires_after_last_handler_returns(self):
        done = []
        q = _queue(done.append)
        tracker = CompletionTracker(q)

        with tracker.batch() as batch:
            for i in range(2):
                q.enqueue(i)
                batch.queued += 1

        batch.future.result(timeout=5)
        assert done == [0, 1]
        q.stop()

    def test_empty_batch_never_fires(self):
        q = _queue()
        tracker = CompletionTracker(q)
        for i in range(2):
            q.enqueue(i)
        assert q.wait_until_idle(timeout=5)

        calls = []
        with tracker.batch(lambda *args: calls.append(args)) as batch:
            pass

        assert batch.future.cancelled()
        assert not tracker.armed
        assert calls == []
        q.stop()

    def test_all_rejected_batch_is_not_armed(self):
        q = _queue(max_size=0, started=False)
        tracker = CompletionTracker(q)

        with tracker.batch() as batch:
            if q.enqueue("x"):
                batch.queued += 1

        assert batch.queued == 0
        assert batch.future.cancelled()
        assert q.status().rejection_count == 1

    def test_new_batch_supersedes_outstanding_one(self):
        q = _queue(started=False)
        tracker = CompletionTracker(q)
        first_calls = []

        with tracker.batch(lambda *args: first_calls.append(args)) as first:
            for i in range(2):
                q.enqueue(i)
                first.queued += 1
        with tracker.batch() as second:
            q.enqueue(2)
            second.queued += 1

        assert first.future.cancelled()
        q.start()

        # The surviving batch counts everything executed since its snapshot
        assert second.future.result(timeout=5) == BatchCompletion(queued=1, processed=3)
        assert first_calls == []
        q.stop()

    def test_error_inside_batch_cancels_it(self):
        q = _queue(started=False)
        tracker = CompletionTracker(q)

        with pytest.raises(RuntimeError):
            with tracker.batch() as batch:
                q.enqueue("x")
                batch.queued += 1
                raise RuntimeError("submission failed")

        assert batch.future.cancelled()
        assert not tracker.armed

    def test_callback_error_is_swallowed(self):
        seen = []
        q = _queue(seen.append)
        tracker = CompletionTracker(q)

        def on_complete(queued, processed):
            raise ValueError("callback bug")

        with tracker.batch(on_complete) as batch:
            q.enqueue("a")
            batch.queued += 1

        assert batch.future.result(timeout=5).processed == 1

        q.enqueue("b")
        assert q.wait_until_idle(timeout=5)
        assert seen == ["a", "b"]
        q.stop()

    def test_disarm_cancels_outstanding_batch(self):
        q = _queue(started=False)
        tracker = CompletionTracker(q)

        with tracker.batch() as batch:
            q.enqueue("a")
            batch.queued += 1
        assert tracker.armed

        tracker.disarm()
        assert batch.future.cancelled()
        assert not tracker.armed
