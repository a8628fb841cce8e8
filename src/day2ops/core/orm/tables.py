"""Plan store tables — plan records and execution grants.

``plan_records`` is the jointly owned record: the controller writes ``plan``,
the remote executor writes the ``applied_*`` and ``failed_*`` columns.
``plan_grants`` holds one row per (namespace, plan, machine) the remote
executor is currently allowed to read and execute.

Tags:
    day2ops, orm, sqlalchemy, tables, plan-store
"""

from __future__ import annotations

from sqlalchemy import LargeBinary, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from day2ops.core.orm.base import Day2Base, TimestampMixin


class PlanRecordTable(TimestampMixin, Day2Base):
    __tablename__ = "plan_records"
    __table_args__ = (UniqueConstraint("namespace", "plan_name", "machine"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    namespace: Mapped[str] = mapped_column(Text, nullable=False)
    plan_name: Mapped[str] = mapped_column(Text, nullable=False)
    machine: Mapped[str] = mapped_column(Text, nullable=False)

    plan: Mapped[bytes | None] = mapped_column(LargeBinary)
    applied_checksum: Mapped[str | None] = mapped_column(Text)
    applied_output: Mapped[bytes | None] = mapped_column(LargeBinary)
    failed_checksum: Mapped[str | None] = mapped_column(Text)
    failed_output: Mapped[bytes | None] = mapped_column(LargeBinary)


class PlanGrantTable(TimestampMixin, Day2Base):
    __tablename__ = "plan_grants"
    __table_args__ = (UniqueConstraint("namespace", "plan_name", "machine"),)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    namespace: Mapped[str] = mapped_column(Text, nullable=False)
    plan_name: Mapped[str] = mapped_column(Text, nullable=False)
    machine: Mapped[str] = mapped_column(Text, nullable=False)
