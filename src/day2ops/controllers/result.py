"""Reconcile result: when, if ever, to look at a key again."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReconcileResult:
    """Outcome of a successful reconcile.

    ``requeue_after=None`` means the key is done until something changes.
    A number is a fixed delay in seconds; ``0`` requeues immediately.
    Errors are raised, never encoded here.
    """

    requeue_after: float | None = None

    @property
    def requeue(self) -> bool:
        return self.requeue_after is not None

    @classmethod
    def after(cls, seconds: float) -> ReconcileResult:
        return cls(requeue_after=seconds)

    @classmethod
    def now(cls) -> ReconcileResult:
        return cls(requeue_after=0.0)


DONE = ReconcileResult()
