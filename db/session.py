from __future__ import annotations

import os
from typing import Generator
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.pool import NullPool
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker, Session
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

DEFAULT_DB_URL = "sqlite:///./data/catchlog.db"


def _normalize_sqlite_url(db_url: str) -> str:
    """Ensure sqlite file URLs are absolute and anchored at repo root when relative.

    This prevents mismatched files when different processes have different CWDs.
    """
    url = make_url(db_url)
    if url.get_backend_name() != "sqlite":
        return db_url
    db_path = url.database or ""
    # skip in-memory URLs
    if db_path in ("", ":memory:"):
        return db_url
    p = Path(db_path)
    if not p.is_absolute():
        abs_p = (ROOT / p).resolve()
        return url.set(database=str(abs_p)).render_as_string(hide_password=False)
    return db_url


def make_engine(db_url: str) -> Engine:
    """Create an engine with NullPool and, for SQLite, foreign key enforcement.

    RESTRICT on metadata references is only honoured when the pragma is on.
    """
    eng = create_engine(db_url, future=True, poolclass=NullPool)
    if eng.dialect.name == "sqlite":
        db_path = eng.url.database or ""
        if db_path not in ("", ":memory:"):
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

        @event.listens_for(eng, "connect")
        def _set_sqlite_pragma(dbapi_connection, connection_record):  # type: ignore[override]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()
    return eng


# Default DB; CATCHLOG_DB_URL overrides, scripts may reconfigure() from --db-url
_env_url = os.environ.get("CATCHLOG_DB_URL")
DB_URL = _normalize_sqlite_url(_env_url or DEFAULT_DB_URL)

engine = make_engine(DB_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Session on the current engine; the schema is created on first use.

    A CATCHLOG_DB_URL that changed since it was last read switches the engine.
    An explicit reconfigure() is not undone by an unchanged env var.
    """
    global _env_url
    env_url = os.environ.get("CATCHLOG_DB_URL")
    if env_url and env_url != _env_url:
        _env_url = env_url
        reconfigure(env_url)
    session = SessionLocal()
    from db.models import Base as _Base
    _Base.metadata.create_all(bind=session.bind)
    try:
        yield session
    finally:
        session.close()


def reconfigure(db_url: str) -> None:
    """Point the module-level engine and session factory at another database."""
    global DB_URL, engine, SessionLocal
    engine.dispose()
    DB_URL = _normalize_sqlite_url(db_url)
    engine = make_engine(DB_URL)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
