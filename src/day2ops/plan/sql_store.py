"""
SQL-backed plan store (SQLAlchemy 2.0).

Each operation runs in its own short session so the store can be shared by
every controller worker thread. Connection-level failures surface as
:class:`~day2ops.core.errors.StoreUnavailableError` with the SQLAlchemy
exception chained as the cause.

Tags:
    plan, store, sqlalchemy, persistence, day2ops
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TypeVar

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from day2ops.core.errors import StoreUnavailableError
from day2ops.core.logging import get_logger
from day2ops.core.orm import (
    Day2Base,
    PlanGrantTable,
    PlanRecordTable,
    create_day2_engine,
    day2_session_factory,
)
from day2ops.plan.store import PlanRecord, PlanTarget

logger = get_logger(__name__)

T = TypeVar("T")


class SqlPlanStore:
    """Plan store persisted in the ``plan_records`` and ``plan_grants`` tables.

    Example:
        >>> store = SqlPlanStore.from_url("sqlite://")
        >>> store.read(PlanTarget("default", "snapshot-s1", "m1")) is None
        True
    """

    def __init__(self, engine: Engine, *, create_tables: bool = True):
        self.engine = engine
        self._sessions = day2_session_factory(engine)
        if create_tables:
            try:
                Day2Base.metadata.create_all(engine)
            except DBAPIError as e:
                raise StoreUnavailableError("failed to create plan store tables", cause=e) from e

    @classmethod
    def from_url(cls, url: str, **kwargs) -> SqlPlanStore:
        return cls(create_day2_engine(url), **kwargs)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._sessions() as session, session.begin():
            yield session

    def _run(self, fn: Callable[[Session], T], operation: str) -> T:
        try:
            with self._session() as session:
                return fn(session)
        except DBAPIError as e:
            logger.warning("plan_store_unavailable", operation=operation, error=str(e))
            raise StoreUnavailableError(f"plan store {operation} failed", cause=e) from e

    @staticmethod
    def _find(session: Session, table: type, target: PlanTarget):
        return session.scalars(
            select(table).where(
                table.namespace == target.namespace,
                table.plan_name == target.plan_name,
                table.machine == target.machine,
            )
        ).one_or_none()

    def _record_row(self, session: Session, target: PlanTarget) -> PlanRecordTable:
        row = self._find(session, PlanRecordTable, target)
        if row is None:
            row = PlanRecordTable(
                namespace=target.namespace,
                plan_name=target.plan_name,
                machine=target.machine,
            )
            session.add(row)
        return row

    # ── PlanStore ───────────────────────────────────────────────────

    def read(self, target: PlanTarget) -> PlanRecord | None:
        def _read(session: Session) -> PlanRecord | None:
            row = self._find(session, PlanRecordTable, target)
            if row is None:
                return None
            return PlanRecord(
                plan=row.plan,
                applied_checksum=row.applied_checksum,
                applied_output=row.applied_output,
                failed_checksum=row.failed_checksum,
                failed_output=row.failed_output,
            )

        return self._run(_read, "read")

    def write(self, target: PlanTarget, plan: bytes) -> None:
        def _write(session: Session) -> None:
            self._record_row(session, target).plan = plan

        self._run(_write, "write")

    def grant(self, target: PlanTarget) -> None:
        def _grant(session: Session) -> None:
            if self._find(session, PlanGrantTable, target) is None:
                session.add(
                    PlanGrantTable(
                        namespace=target.namespace,
                        plan_name=target.plan_name,
                        machine=target.machine,
                    )
                )

        self._run(_grant, "grant")

    def revoke(self, target: PlanTarget) -> None:
        def _revoke(session: Session) -> None:
            session.execute(
                delete(PlanGrantTable).where(
                    PlanGrantTable.namespace == target.namespace,
                    PlanGrantTable.plan_name == target.plan_name,
                    PlanGrantTable.machine == target.machine,
                )
            )

        self._run(_revoke, "revoke")

    def revoke_plan(self, namespace: str, plan_name: str) -> int:
        def _revoke_plan(session: Session) -> int:
            result = session.execute(
                delete(PlanGrantTable).where(
                    PlanGrantTable.namespace == namespace,
                    PlanGrantTable.plan_name == plan_name,
                )
            )
            return result.rowcount

        return self._run(_revoke_plan, "revoke_plan")

    def is_granted(self, target: PlanTarget) -> bool:
        return self._run(lambda s: self._find(s, PlanGrantTable, target) is not None, "is_granted")

    # ── Executor side ───────────────────────────────────────────────

    def report_applied(self, target: PlanTarget, checksum: str, output: bytes = b"") -> None:
        def _report(session: Session) -> None:
            row = self._record_row(session, target)
            row.applied_checksum = checksum
            row.applied_output = output

        self._run(_report, "report_applied")

    def report_failed(self, target: PlanTarget, checksum: str, output: bytes = b"") -> None:
        def _report(session: Session) -> None:
            row = self._record_row(session, target)
            row.failed_checksum = checksum
            row.failed_output = output

        self._run(_report, "report_failed")

    def list_targets(self, namespace: str | None = None) -> list[PlanTarget]:
        """Every target that has a plan record, optionally within *namespace*."""

        def _list(session: Session) -> list[PlanTarget]:
            stmt = select(PlanRecordTable).order_by(
                PlanRecordTable.namespace, PlanRecordTable.plan_name, PlanRecordTable.machine
            )
            if namespace is not None:
                stmt = stmt.where(PlanRecordTable.namespace == namespace)
            return [
                PlanTarget(row.namespace, row.plan_name, row.machine)
                for row in session.scalars(stmt)
            ]

        return self._run(_list, "list_targets")


__all__ = ["SqlPlanStore"]
