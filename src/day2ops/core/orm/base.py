"""Declarative base and mixins for the day2ops tables.

Uses SQLAlchemy 2.0 ``DeclarativeBase`` with a ``type_annotation_map``
so mapped columns can use plain Python types.
"""

from __future__ import annotations

import datetime

from sqlalchemy import DateTime, Integer, LargeBinary, Text, text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Day2Base(DeclarativeBase):
    """Shared declarative base for every day2ops table.

    * ``str``   → ``Text``
    * ``int``   → ``Integer``
    * ``bool``  → ``Integer``  (SQLite has no native BOOLEAN)
    * ``bytes`` → ``LargeBinary``
    * ``datetime.datetime`` → ``DateTime``
    """

    type_annotation_map = {
        str: Text,
        int: Integer,
        bool: Integer,
        bytes: LargeBinary,
        datetime.datetime: DateTime,
    }


class TimestampMixin:
    """Adds ``created_at`` and ``updated_at`` with server defaults."""

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime,
        nullable=False,
        server_default=text("CURRENT_TIMESTAMP"),
    )
    updated_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime,
        nullable=True,
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
    )
