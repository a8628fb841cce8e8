"""
Tests for day2ops.runtime.queue.WorkQueue.

Delays are driven by a fake clock; ``get(timeout=0)`` never blocks.
"""

import threading

import pytest

from day2ops.runtime.queue import WorkQueue


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue(clock) -> WorkQueue:
    return WorkQueue(clock=clock)


class TestDeduplication:
    def test_duplicate_add_queued_once(self, queue):
        queue.add("a")
        queue.add("a")
        queue.add("b")
        assert len(queue) == 2
        assert queue.get(timeout=0) == "a"
        assert queue.get(timeout=0) == "b"
        assert queue.get(timeout=0) is None

    def test_fifo(self, queue):
        for key in ("a", "b", "c"):
            queue.add(key)
        assert [queue.get(timeout=0) for _ in range(3)] == ["a", "b", "c"]


class TestPerKeySerialization:
    def test_key_in_flight_not_handed_out_again(self, queue):
        queue.add("a")
        assert queue.get(timeout=0) == "a"

        queue.add("a")
        assert queue.get(timeout=0) is None

    def test_dirty_key_requeued_after_done(self, queue):
        queue.add("a")
        key = queue.get(timeout=0)
        queue.add("a")
        queue.done(key)

        assert queue.get(timeout=0) == "a"

    def test_clean_key_not_requeued(self, queue):
        queue.add("a")
        queue.done(queue.get(timeout=0))
        assert queue.get(timeout=0) is None

    def test_other_keys_flow_while_one_in_flight(self, queue):
        queue.add("a")
        queue.get(timeout=0)
        queue.add("b")
        assert queue.get(timeout=0) == "b"


class TestDelayedAdds:
    def test_not_ready_before_delay(self, queue, clock):
        queue.add_after("a", 5)
        assert queue.get(timeout=0) is None
        assert queue.pending_delayed() == 1

        clock.advance(5)
        assert queue.get(timeout=0) == "a"
        assert queue.pending_delayed() == 0

    def test_earliest_delay_wins(self, queue, clock):
        queue.add_after("a", 30)
        queue.add_after("a", 5)
        queue.add_after("a", 60)
        assert queue.next_ready_in() == 5

        clock.advance(5)
        assert queue.get(timeout=0) == "a"
        queue.done("a")

        clock.advance(100)
        assert queue.get(timeout=0) is None

    def test_zero_delay_adds_now(self, queue):
        queue.add_after("a", 0)
        assert queue.get(timeout=0) == "a"

    def test_next_ready_in_empty(self, queue):
        assert queue.next_ready_in() is None

    def test_delayed_key_dedupes_with_queued(self, queue, clock):
        queue.add("a")
        queue.add_after("a", 1)
        clock.advance(1)
        assert queue.get(timeout=0) == "a"
        assert queue.get(timeout=0) is None


class TestShutdown:
    def test_get_returns_none(self, queue):
        queue.shut_down()
        assert queue.shutting_down
        assert queue.get() is None

    def test_adds_ignored(self, queue):
        queue.shut_down()
        queue.add("a")
        queue.add_after("a", 1)
        assert len(queue) == 0
        assert queue.pending_delayed() == 0

    def test_wakes_blocked_getter(self):
        queue = WorkQueue()
        result = []
        t = threading.Thread(target=lambda: result.append(queue.get()))
        t.start()
        queue.shut_down()
        t.join(timeout=5)
        assert result == [None]


class TestBlockingGet:
    def test_real_clock_delay(self):
        queue = WorkQueue()
        queue.add_after("a", 0.01)
        assert queue.get(timeout=2) == "a"
