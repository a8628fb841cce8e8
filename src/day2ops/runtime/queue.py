"""
Work queue with deduplication, delayed adds and per-key serialization.

Guarantees:

* a key is handed out to at most one worker at a time; adding a key that is
  being processed marks it dirty and it is handed out again after
  :meth:`WorkQueue.done`;
* a key sitting in the queue is never queued twice;
* :meth:`WorkQueue.add_after` keeps only the earliest pending delay per key.

Usage::

    queue = WorkQueue()
    queue.add(key)
    key = queue.get(timeout=1.0)
    try:
        ...
    finally:
        queue.done(key)

Tags:
    runtime, queue, concurrency, day2ops
"""

from __future__ import annotations

import heapq
import itertools
import threading
import time
from collections import deque
from collections.abc import Callable, Hashable


class WorkQueue:
    """Thread-safe level-triggered work queue.

    Args:
        clock: Monotonic time source in seconds; injectable for tests
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._cond = threading.Condition()
        self._queue: deque[Hashable] = deque()
        self._dirty: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        self._waiting: list[tuple[float, int, Hashable]] = []
        self._ready_at: dict[Hashable, float] = {}
        self._seq = itertools.count()
        self._shutting_down = False

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        return self._shutting_down

    def add(self, key: Hashable) -> None:
        with self._cond:
            self._add_locked(key)

    def add_after(self, key: Hashable, delay: float) -> None:
        """Add *key* once *delay* seconds have passed."""
        if delay <= 0:
            self.add(key)
            return
        with self._cond:
            if self._shutting_down:
                return
            ready_at = self._clock() + delay
            current = self._ready_at.get(key)
            if current is not None and current <= ready_at:
                return
            self._ready_at[key] = ready_at
            heapq.heappush(self._waiting, (ready_at, next(self._seq), key))
            self._cond.notify()

    def get(self, timeout: float | None = None) -> Hashable | None:
        """Block until a key is ready and claim it.

        Returns:
            The key, or None on timeout or shutdown
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                self._promote_due_locked()
                if self._queue:
                    key = self._queue.popleft()
                    self._dirty.discard(key)
                    self._processing.add(key)
                    return key
                if self._shutting_down:
                    return None

                now = self._clock()
                wait = None
                if self._waiting:
                    wait = max(0.0, self._waiting[0][0] - now)
                if deadline is not None:
                    remaining = deadline - now
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, key: Hashable) -> None:
        """Release *key*; requeue it if it was added while being processed."""
        with self._cond:
            self._processing.discard(key)
            if key in self._dirty:
                self._queue.append(key)
                self._cond.notify()

    def shut_down(self) -> None:
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()

    def pending_delayed(self) -> int:
        """Number of keys waiting for their delay to pass."""
        with self._cond:
            return len(self._ready_at)

    def next_ready_in(self) -> float | None:
        """Seconds until the earliest delayed key is due, if any."""
        with self._cond:
            self._drop_stale_locked()
            if not self._waiting:
                return None
            return max(0.0, self._waiting[0][0] - self._clock())

    def _add_locked(self, key: Hashable) -> None:
        if self._shutting_down or key in self._dirty:
            return
        self._dirty.add(key)
        if key in self._processing:
            return
        self._queue.append(key)
        self._cond.notify()

    def _drop_stale_locked(self) -> None:
        while self._waiting:
            ready_at, _, key = self._waiting[0]
            if self._ready_at.get(key) == ready_at:
                return
            heapq.heappop(self._waiting)

    def _promote_due_locked(self) -> None:
        now = self._clock()
        while self._waiting:
            self._drop_stale_locked()
            if not self._waiting or self._waiting[0][0] > now:
                return
            _, _, key = heapq.heappop(self._waiting)
            del self._ready_at[key]
            self._add_locked(key)
