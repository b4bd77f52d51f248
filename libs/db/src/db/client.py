"""SQLAlchemy engine/session helpers.

Usage
-----
from db.client import Database

database = Database.from_env()
with database.session_scope() as s:
    s.execute(...)

A :class:`Database` owns one engine and its session factory. Callers create
it once per process (or per test) and pass it to whatever needs it; there is
no module-level engine.
"""

from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def database_url(override: str | None = None) -> str:
    url = override or os.getenv("DATABASE_URL")
    if not url:
        raise RuntimeError("DATABASE_URL is not set; cannot initialize database client")
    return url


class Database:
    """Engine plus session factory for one database URL."""

    def __init__(self, url: str, **engine_kwargs: Any) -> None:
        self.url = url
        self.engine: Engine = create_engine(url, pool_pre_ping=True, **engine_kwargs)
        if self.engine.dialect.name == "sqlite":
            event.listen(self.engine, "connect", _sqlite_on_connect)
        self._session_maker: sessionmaker[Session] = sessionmaker(
            bind=self.engine, expire_on_commit=False, class_=Session
        )

    @classmethod
    def from_env(cls, *, database_url_override: str | None = None) -> Database:
        return cls(database_url(database_url_override))

    def session(self) -> Session:
        """Return a new session bound to this engine."""

        return self._session_maker()

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Provide a transactional scope around a series of operations."""

        session = self.session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def create_all(self) -> None:
        """Create every table in the ORM metadata (tests and local setups)."""

        from .models.insights import Base

        Base.metadata.create_all(bind=self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def _sqlite_on_connect(dbapi_conn: Any, _record: Any) -> None:  # pragma: no cover - tiny bridge
    # SQLite leaves foreign keys off unless asked per connection.
    dbapi_conn.execute("PRAGMA foreign_keys = ON")


__all__ = [
    "Database",
    "database_url",
]
