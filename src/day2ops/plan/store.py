"""
Plan store - the shared record between controller and remote executor.

A plan record is keyed by :class:`PlanTarget` ``(namespace, plan_name,
machine)``. The controller is the only writer of ``plan``; the remote
executor is the only writer of the ``applied_*`` and ``failed_*`` fields.
Execution rights (grants) use the same key: the executor only reads plans it
has been granted.

The store is a point-to-point message bus in disguise. :class:`PlanStore`
keeps the state machines independent of whatever concrete store backs it:

    ┌────────────┐  write(plan)   ┌────────────┐  read(plan)    ┌──────────┐
    │ Controller │ ─────────────▶ │ Plan Store │ ◀───────────── │ Executor │
    │            │ ◀───────────── │            │ ─────────────▶ │          │
    └────────────┘  read(applied) └────────────┘ report_applied └──────────┘

Tags:
    plan, store, protocol, day2ops
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, replace
from typing import Protocol, runtime_checkable

from day2ops.core.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PlanTarget:
    """Key of one plan record: a named plan scoped to a single machine."""

    namespace: str
    plan_name: str
    machine: str

    def __str__(self) -> str:
        return f"{self.namespace}/{self.plan_name}/{self.machine}"


@dataclass
class PlanRecord:
    """Contents of a plan record.

    ``plan`` is canonical plan bytes. ``applied_checksum`` is the lowercase hex
    SHA-256 of the plan the executor last completed, ``applied_output`` its
    gzip-compressed output map. The ``failed_*`` pair mirrors them for a plan
    the executor ran without success.
    """

    plan: bytes | None = None
    applied_checksum: str | None = None
    applied_output: bytes | None = None
    failed_checksum: str | None = None
    failed_output: bytes | None = None


@runtime_checkable
class PlanStore(Protocol):
    """Access to plan records and execution grants.

    Implementations raise :class:`~day2ops.core.errors.StoreUnavailableError`
    when the backing store cannot be reached. A missing record is not an
    error: :meth:`read` returns ``None``.
    """

    def read(self, target: PlanTarget) -> PlanRecord | None: ...

    def write(self, target: PlanTarget, plan: bytes) -> None: ...

    def grant(self, target: PlanTarget) -> None: ...

    def revoke(self, target: PlanTarget) -> None: ...

    def revoke_plan(self, namespace: str, plan_name: str) -> int: ...

    def is_granted(self, target: PlanTarget) -> bool: ...

    def report_applied(self, target: PlanTarget, checksum: str, output: bytes = b"") -> None: ...

    def report_failed(self, target: PlanTarget, checksum: str, output: bytes = b"") -> None: ...


class InMemoryPlanStore:
    """Thread-safe in-process plan store for tests and local runs."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: dict[PlanTarget, PlanRecord] = {}
        self._grants: set[PlanTarget] = set()
        self.write_count = 0

    def read(self, target: PlanTarget) -> PlanRecord | None:
        with self._lock:
            record = self._records.get(target)
            return replace(record) if record is not None else None

    def write(self, target: PlanTarget, plan: bytes) -> None:
        with self._lock:
            record = self._records.setdefault(target, PlanRecord())
            record.plan = plan
            self.write_count += 1

    def grant(self, target: PlanTarget) -> None:
        with self._lock:
            self._grants.add(target)

    def revoke(self, target: PlanTarget) -> None:
        with self._lock:
            self._grants.discard(target)

    def revoke_plan(self, namespace: str, plan_name: str) -> int:
        """Drop every grant of the plan, whatever machines it covered."""
        with self._lock:
            matching = {
                t for t in self._grants if (t.namespace, t.plan_name) == (namespace, plan_name)
            }
            self._grants -= matching
        return len(matching)

    def is_granted(self, target: PlanTarget) -> bool:
        with self._lock:
            return target in self._grants

    def report_applied(self, target: PlanTarget, checksum: str, output: bytes = b"") -> None:
        with self._lock:
            record = self._records.setdefault(target, PlanRecord())
            record.applied_checksum = checksum
            record.applied_output = output
        logger.debug("plan_applied_reported", target=str(target))

    def report_failed(self, target: PlanTarget, checksum: str, output: bytes = b"") -> None:
        with self._lock:
            record = self._records.setdefault(target, PlanRecord())
            record.failed_checksum = checksum
            record.failed_output = output
        logger.debug("plan_failed_reported", target=str(target))

    def grants(self) -> set[PlanTarget]:
        """Snapshot of every granted target."""
        with self._lock:
            return set(self._grants)


__all__ = ["PlanTarget", "PlanRecord", "PlanStore", "InMemoryPlanStore"]
