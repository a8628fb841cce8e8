"""
day2ops.runtime - level-triggered reconcile loop.

Modules
-------
queue        WorkQueue (dedupe, delayed adds, per-key serialization)
retry        Backoff strategies and per-key failure tracking
controller   Controller (one reconciler, thread-pool workers)
manager      Manager (wires the snapshot, restore and inventory controllers)
"""

from day2ops.runtime.controller import Controller, ControllerStats
from day2ops.runtime.manager import Manager
from day2ops.runtime.queue import WorkQueue
from day2ops.runtime.retry import ConstantBackoff, ExponentialBackoff, FailureTracker, RetryStrategy

__all__ = [
    "Controller",
    "ControllerStats",
    "Manager",
    "WorkQueue",
    "ConstantBackoff",
    "ExponentialBackoff",
    "FailureTracker",
    "RetryStrategy",
]
