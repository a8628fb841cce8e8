"""Backoff strategies for reconcile errors.

Reconcilers never sleep; when one raises, the controller requeues the key
after the delay a :class:`RetryStrategy` computes from the number of
consecutive failures of that key.

Example:
    >>> from day2ops.runtime.retry import ExponentialBackoff
    >>>
    >>> strategy = ExponentialBackoff(base_delay=0.5, max_delay=300.0, jitter=False)
    >>> [strategy.next_delay(attempt) for attempt in range(4)]
    [0.5, 1.0, 2.0, 4.0]
"""

from __future__ import annotations

import random
import threading
from abc import ABC, abstractmethod
from collections.abc import Hashable
from dataclasses import dataclass, field


def _within_limit(limit: int | None, attempt: int) -> bool:
    return limit is None or attempt < limit


class RetryStrategy(ABC):
    """Maps a failure count to a requeue delay."""

    @abstractmethod
    def next_delay(self, attempt: int) -> float:
        """Seconds to wait after the failure numbered *attempt* (zero-based)."""
        ...

    @abstractmethod
    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        """False once the key has failed too often to be requeued again."""
        ...

@dataclass
class ExponentialBackoff(RetryStrategy):
    """Doubling delay, capped, with symmetric jitter.

    ``base_delay * multiplier**attempt`` is clamped to ``max_delay``; with
    *jitter* on, up to ``jitter_range`` of that value is added or removed.
    ``max_retries=None`` keeps a key in the queue forever, which is what a
    level-triggered controller wants.
    """

    max_retries: int | None = None
    base_delay: float = 0.5
    max_delay: float = 300.0
    multiplier: float = 2.0
    jitter: bool = True
    jitter_range: float = 0.25

    def next_delay(self, attempt: int) -> float:
        # exponent capped at 64 so float math stays finite
        delay = min(self.base_delay * self.multiplier ** min(attempt, 64), self.max_delay)
        if not self.jitter:
            return delay
        spread = delay * self.jitter_range
        return max(0.0, min(delay + random.uniform(-spread, spread), self.max_delay))

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        return _within_limit(self.max_retries, attempt)


@dataclass
class ConstantBackoff(RetryStrategy):
    """Same delay after every failure."""

    max_retries: int | None = None
    delay: float = 1.0

    def next_delay(self, attempt: int) -> float:
        return self.delay

    def should_retry(self, attempt: int, error: Exception | None = None) -> bool:
        return _within_limit(self.max_retries, attempt)


@dataclass
class FailureTracker:
    """Consecutive failure counts per key.

    Thread-safe. A success clears the key so the next failure starts the
    backoff from the beginning.
    """

    strategy: RetryStrategy
    _failures: dict[Hashable, int] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def record_failure(self, key: Hashable, error: Exception) -> float | None:
        """Count a failure of *key*.

        Returns:
            Delay before the next attempt, or None if the strategy gives up
        """
        with self._lock:
            attempt = self._failures.get(key, 0)
            self._failures[key] = attempt + 1
        if not self.strategy.should_retry(attempt, error):
            return None
        return self.strategy.next_delay(attempt)

    def forget(self, key: Hashable) -> None:
        with self._lock:
            self._failures.pop(key, None)

    def failures(self, key: Hashable) -> int:
        with self._lock:
            return self._failures.get(key, 0)
