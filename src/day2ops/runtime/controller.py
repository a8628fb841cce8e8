"""
Controller loop - pulls keys from a work queue and reconciles them.

A :class:`Controller` owns one reconciler and one :class:`WorkQueue`.
Workers run on a thread pool; the queue guarantees that a given key is never
reconciled by two workers at once, while different keys run in parallel.

Result handling:

* ``ReconcileResult.requeue_after`` → fixed-delay requeue, failure count reset
* ``DONE`` → nothing, failure count reset
* exception → requeue after the key's exponential backoff delay; errors that
  are not retryable wait the maximum delay

Usage::

    controller = Controller(SnapshotReconciler(...), max_workers=4)
    controller.enqueue(ObjectKey("default", "s1"))
    controller.start_background()
    ...
    controller.stop()

Tags:
    runtime, controller, reconcile, worker, day2ops
"""

from __future__ import annotations

import signal
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any, Protocol

from day2ops.controllers.result import ReconcileResult
from day2ops.core.errors import Day2Error, categorize_error, get_retry_after, is_retryable
from day2ops.core.logging import LogContext, get_logger
from day2ops.models import ObjectKey
from day2ops.runtime.queue import WorkQueue
from day2ops.runtime.retry import ExponentialBackoff, FailureTracker

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


class Reconciler(Protocol):
    name: str

    def reconcile(self, key: ObjectKey) -> ReconcileResult: ...


@dataclass
class ControllerStats:
    """Aggregate statistics for a controller."""

    reconciles: int = 0
    errors: int = 0
    requeues: int = 0
    uptime_seconds: float = 0
    last_reconcile_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "reconciles": self.reconciles,
            "errors": self.errors,
            "requeues": self.requeues,
            "uptime_seconds": round(self.uptime_seconds, 2),
            "last_reconcile_at": self.last_reconcile_at.isoformat()
            if self.last_reconcile_at
            else None,
        }


class Controller:
    """Runs a reconciler over the keys of a work queue."""

    def __init__(
        self,
        reconciler: Reconciler,
        *,
        max_workers: int = 1,
        backoff: ExponentialBackoff | None = None,
        queue: WorkQueue | None = None,
        poll_timeout: float = 0.5,
    ):
        self.reconciler = reconciler
        self.name = reconciler.name
        self.queue = queue or WorkQueue()
        self.backoff = backoff or ExponentialBackoff()
        self._failures = FailureTracker(self.backoff)
        self._max_workers = max_workers
        self._poll_timeout = poll_timeout
        self._shutdown = threading.Event()
        self._started_at = _utcnow()
        self._stats = ControllerStats()
        self._stats_lock = threading.Lock()
        self._pool: ThreadPoolExecutor | None = None

    def enqueue(self, key: ObjectKey) -> None:
        self.queue.add(key)

    def get_stats(self) -> ControllerStats:
        """Return current controller statistics."""
        self._stats.uptime_seconds = (_utcnow() - self._started_at).total_seconds()
        return self._stats

    def failures(self, key: ObjectKey) -> int:
        """Consecutive reconcile failures of *key*."""
        return self._failures.failures(key)

    # ------------------------------------------------------------------ #
    # Processing
    # ------------------------------------------------------------------ #

    def process_next(self, timeout: float | None = 0) -> bool:
        """Reconcile one ready key on the calling thread.

        Returns:
            True if a key was processed
        """
        key = self.queue.get(timeout=timeout)
        if key is None:
            return False
        self._process(key)
        return True

    def _process(self, key: ObjectKey) -> None:
        with LogContext(controller=self.name, key=str(key)):
            try:
                result = self.reconciler.reconcile(key)
            except Exception as e:
                self._handle_error(key, e)
            else:
                self._failures.forget(key)
                with self._stats_lock:
                    self._stats.reconciles += 1
                    self._stats.last_reconcile_at = _utcnow()
                    if result.requeue:
                        self._stats.requeues += 1
                if result.requeue:
                    logger.debug("reconcile_requeued", requeue_after=result.requeue_after)
                    self.queue.add_after(key, result.requeue_after)
            finally:
                self.queue.done(key)

    def _handle_error(self, key: ObjectKey, error: Exception) -> None:
        with self._stats_lock:
            self._stats.errors += 1
            self._stats.last_reconcile_at = _utcnow()

        delay = self._failures.record_failure(key, error)
        if delay is not None:
            retry_after = get_retry_after(error)
            if retry_after is not None:
                delay = float(retry_after)
            elif not is_retryable(error):
                delay = self.backoff.max_delay

        if isinstance(error, Day2Error):
            details = error.to_dict()
        else:
            details = {"error": repr(error), "category": categorize_error(error).value}
        if delay is None:
            logger.error("reconcile_failed_giving_up", **details)
            return

        logger.error("reconcile_failed", retry_in=round(delay, 3), **details)
        self.queue.add_after(key, delay)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def start(self) -> None:
        """Run workers until :meth:`stop` (blocking). Installs signal handlers
        for graceful shutdown on SIGINT / SIGTERM when on the main thread.
        """
        logger.info("controller_starting", controller=self.name, workers=self._max_workers)

        try:
            signal.signal(signal.SIGINT, self._handle_signal)
            signal.signal(signal.SIGTERM, self._handle_signal)
        except ValueError:
            pass  # not in main thread

        self._pool = ThreadPoolExecutor(
            max_workers=self._max_workers,
            thread_name_prefix=f"{self.name}-worker",
        )
        try:
            for _ in range(self._max_workers):
                self._pool.submit(self._worker)
            self._shutdown.wait()
        finally:
            self.queue.shut_down()
            self._pool.shutdown(wait=True)
            logger.info("controller_stopped", controller=self.name)

    def start_background(self) -> threading.Thread:
        """Start the controller in a daemon thread. Returns the thread."""
        t = threading.Thread(target=self.start, name=f"{self.name}-loop", daemon=True)
        t.start()
        return t

    def stop(self) -> None:
        """Request graceful shutdown."""
        logger.info("controller_stopping", controller=self.name)
        self._shutdown.set()
        self.queue.shut_down()

    def _handle_signal(self, signum: int, _frame: Any) -> None:
        logger.info("signal_received", signal=signum)
        self.stop()

    def _worker(self) -> None:
        while not self._shutdown.is_set():
            key = self.queue.get(timeout=self._poll_timeout)
            if key is None:
                continue
            self._process(key)
