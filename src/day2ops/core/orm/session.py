"""Engine and session construction for the SQL plan store."""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def _sqlite_pragmas(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_day2_engine(
    url: str = "sqlite:///day2ops.db",
    *,
    echo: bool = False,
    pool_size: int | None = None,
    **kwargs: Any,
) -> Engine:
    """Build an engine for the plan store.

    SQLite engines are shared across reconcile worker threads, so same-thread
    checks are off; an in-memory URL gets a ``StaticPool`` so every session
    sees the one database. *pool_size* only applies to server databases.
    """
    if not url.startswith("sqlite"):
        if pool_size is not None:
            kwargs.setdefault("pool_size", pool_size)
        return create_engine(url, echo=echo, **kwargs)

    kwargs.setdefault("connect_args", {"check_same_thread": False})
    if url in _MEMORY_URLS:
        kwargs.setdefault("poolclass", StaticPool)
    engine = create_engine(url, echo=echo, **kwargs)
    event.listen(engine, "connect", _sqlite_pragmas)
    return engine


class Day2Session(Session):
    """Session whose objects stay loaded after commit."""

    def __init__(self, bind: Engine | None = None, **kwargs: Any) -> None:
        kwargs.setdefault("expire_on_commit", False)
        super().__init__(bind=bind, **kwargs)


def day2_session_factory(engine: Engine) -> sessionmaker[Day2Session]:
    return sessionmaker(bind=engine, class_=Day2Session)
