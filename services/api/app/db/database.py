from __future__ import annotations

import os
from pathlib import Path

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker

_DEFAULT_DB_PATH = Path(".local") / "estimate.db"

_engine: Engine | None = None
_engine_url: str | None = None
_sessions: sessionmaker[Session] | None = None


def database_url() -> str:
    """DATABASE_URL, or a SQLite file under .local/ for local runs."""

    url = os.getenv("DATABASE_URL", "").strip()
    if url:
        return url

    _DEFAULT_DB_PATH.parent.mkdir(parents=True, exist_ok=True)
    return f"sqlite+pysqlite:///{_DEFAULT_DB_PATH}"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _build_engine(url: str) -> Engine:
    if not url.startswith("sqlite"):
        return create_engine(url, pool_pre_ping=True)

    engine = create_engine(url, connect_args={"check_same_thread": False})
    # SQLite ships with foreign keys off; options must point at a real item.
    event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def get_engine() -> Engine:
    """Engine for the current DATABASE_URL.

    The URL is re-read on every call. When it changes, the old engine's pool is
    disposed and a new engine takes its place.
    """

    global _engine, _engine_url, _sessions

    url = database_url()
    if _engine is not None and _engine_url == url:
        return _engine

    if _engine is not None:
        _engine.dispose()

    _engine = _build_engine(url)
    _engine_url = url
    _sessions = sessionmaker(bind=_engine, autoflush=False, expire_on_commit=True)
    return _engine


def db_session() -> Session:
    get_engine()
    assert _sessions is not None
    return _sessions()
