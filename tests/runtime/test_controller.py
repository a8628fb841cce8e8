"""
Tests for the controller loop: requeue handling, error backoff and workers.
"""

import threading
import time

import pytest

from day2ops.controllers.result import DONE, ReconcileResult
from day2ops.core.errors import MalformedOutputError, StoreUnavailableError
from day2ops.models import ObjectKey
from day2ops.runtime.controller import Controller
from day2ops.runtime.queue import WorkQueue
from day2ops.runtime.retry import ExponentialBackoff

KEY = ObjectKey("default", "s1")


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class ScriptedReconciler:
    """Returns (or raises) the scripted outcomes in order, then DONE."""

    name = "scripted"

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls: list[ObjectKey] = []

    def reconcile(self, key):
        self.calls.append(key)
        outcome = self.outcomes.pop(0) if self.outcomes else DONE
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_controller(reconciler, clock=None) -> Controller:
    return Controller(
        reconciler,
        backoff=ExponentialBackoff(base_delay=0.5, max_delay=300, jitter=False),
        queue=WorkQueue(clock=clock or FakeClock()),
    )


class TestResultHandling:
    def test_done_not_requeued(self):
        reconciler = ScriptedReconciler(DONE)
        controller = make_controller(reconciler)
        controller.enqueue(KEY)

        assert controller.process_next() is True
        assert controller.queue.pending_delayed() == 0
        assert len(controller.queue) == 0
        assert controller.get_stats().reconciles == 1

    def test_fixed_delay_requeue(self):
        clock = FakeClock()
        controller = make_controller(ScriptedReconciler(ReconcileResult.after(30)), clock)
        controller.enqueue(KEY)
        controller.process_next()

        assert controller.queue.next_ready_in() == 30
        clock.now = 30
        assert controller.process_next() is True

    def test_immediate_requeue(self):
        reconciler = ScriptedReconciler(ReconcileResult.now(), DONE)
        controller = make_controller(reconciler)
        controller.enqueue(KEY)

        controller.process_next()
        controller.process_next()

        assert reconciler.calls == [KEY, KEY]
        assert controller.get_stats().requeues == 1

    def test_nothing_ready(self):
        controller = make_controller(ScriptedReconciler())
        assert controller.process_next() is False


class TestErrorBackoff:
    def test_retryable_error_backs_off_exponentially(self):
        clock = FakeClock()
        reconciler = ScriptedReconciler(
            StoreUnavailableError("down"), StoreUnavailableError("down"), DONE
        )
        controller = make_controller(reconciler, clock)
        controller.enqueue(KEY)

        controller.process_next()
        assert controller.queue.next_ready_in() == 0.5
        assert controller.failures(KEY) == 1

        clock.now += 0.5
        controller.process_next()
        assert controller.queue.next_ready_in() == 1.0
        assert controller.failures(KEY) == 2

        clock.now += 1.0
        controller.process_next()
        assert controller.failures(KEY) == 0
        assert controller.get_stats().errors == 2

    def test_success_resets_backoff(self):
        clock = FakeClock()
        reconciler = ScriptedReconciler(
            StoreUnavailableError("down"), ReconcileResult.now(), StoreUnavailableError("down")
        )
        controller = make_controller(reconciler, clock)
        controller.enqueue(KEY)

        controller.process_next()
        clock.now += 0.5
        controller.process_next()
        controller.process_next()

        assert controller.queue.next_ready_in() == 0.5

    def test_non_retryable_waits_max_delay(self):
        controller = make_controller(ScriptedReconciler(MalformedOutputError("bad gzip")))
        controller.enqueue(KEY)

        controller.process_next()

        assert controller.queue.next_ready_in() == 300

    def test_error_retry_after_overrides_backoff(self):
        controller = make_controller(ScriptedReconciler(StoreUnavailableError("busy", retry_after=42)))
        controller.enqueue(KEY)

        controller.process_next()

        assert controller.queue.next_ready_in() == 42

    def test_unexpected_exception_is_contained(self):
        controller = make_controller(ScriptedReconciler(KeyError("boom")))
        controller.enqueue(KEY)

        assert controller.process_next() is True
        assert controller.get_stats().errors == 1
        assert controller.queue.pending_delayed() == 1


class TestStats:
    def test_to_dict(self):
        controller = make_controller(ScriptedReconciler(DONE))
        controller.enqueue(KEY)
        controller.process_next()

        stats = controller.get_stats().to_dict()
        assert stats["reconciles"] == 1
        assert stats["errors"] == 0
        assert stats["last_reconcile_at"] is not None


class TestWorkers:
    def test_background_processes_keys(self):
        reconciler = ScriptedReconciler()
        controller = Controller(reconciler, max_workers=2, poll_timeout=0.05)
        thread = controller.start_background()
        try:
            controller.enqueue(ObjectKey("default", "a"))
            controller.enqueue(ObjectKey("default", "b"))
            deadline = time.monotonic() + 5
            while len(reconciler.calls) < 2 and time.monotonic() < deadline:
                time.sleep(0.01)
        finally:
            controller.stop()
            thread.join(timeout=5)

        assert sorted(k.name for k in reconciler.calls) == ["a", "b"]

    def test_same_key_never_concurrent(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        class SlowReconciler:
            name = "slow"

            def reconcile(self, key):
                nonlocal active, peak
                with lock:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.02)
                with lock:
                    active -= 1
                return DONE

        controller = Controller(SlowReconciler(), max_workers=4, poll_timeout=0.05)
        thread = controller.start_background()
        try:
            for _ in range(10):
                controller.enqueue(KEY)
                time.sleep(0.005)
            time.sleep(0.1)
        finally:
            controller.stop()
            thread.join(timeout=5)

        assert peak == 1


@pytest.mark.parametrize("delay", [0, 5])
def test_requeue_delay_respected(delay):
    clock = FakeClock()
    controller = make_controller(ScriptedReconciler(ReconcileResult.after(delay)), clock)
    controller.enqueue(KEY)
    controller.process_next()

    ready_now = controller.process_next()
    assert ready_now is (delay == 0)
