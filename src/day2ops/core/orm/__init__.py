"""SQLAlchemy 2.0 ORM layer backing the SQL plan store.

Modules
-------
base        Day2Base (declarative base) + TimestampMixin
session     Engine factory and Day2Session
tables      PlanRecordTable, PlanGrantTable
"""

from __future__ import annotations

from day2ops.core.orm.base import Day2Base, TimestampMixin
from day2ops.core.orm.session import Day2Session, create_day2_engine, day2_session_factory
from day2ops.core.orm.tables import PlanGrantTable, PlanRecordTable

__all__ = [
    "Day2Base",
    "TimestampMixin",
    "create_day2_engine",
    "Day2Session",
    "day2_session_factory",
    "PlanRecordTable",
    "PlanGrantTable",
]
