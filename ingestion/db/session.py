"""Engine and session helpers for the content store."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ingestion.settings import Settings, get_settings

_ENGINE: Engine | None = None
_SESSIONMAKER: sessionmaker[Session] | None = None
_CURRENT_DSN: str | None = None


def _connect_args(dsn: str) -> Dict[str, Any]:
    # FastAPI runs sync routes in a threadpool
    if dsn.startswith("sqlite"):
        return {"check_same_thread": False}
    return {}


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; emit it ourselves
    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ANN001
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # noqa: ANN001
        conn.exec_driver_sql("BEGIN")


def get_engine(settings: Settings | None = None) -> Engine:
    """Return an engine memoized per DSN."""
    global _ENGINE, _SESSIONMAKER, _CURRENT_DSN

    config = settings or get_settings()
    if _ENGINE is None or _CURRENT_DSN != config.postgres_dsn:
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = create_engine(
            config.postgres_dsn,
            pool_pre_ping=True,
            connect_args=_connect_args(config.postgres_dsn),
        )
        if config.postgres_dsn.startswith("sqlite"):
            _enable_sqlite_savepoints(_ENGINE)
        _SESSIONMAKER = sessionmaker(bind=_ENGINE, expire_on_commit=False, autoflush=False)
        _CURRENT_DSN = config.postgres_dsn
    return _ENGINE


def get_sessionmaker(settings: Settings | None = None) -> sessionmaker[Session]:
    get_engine(settings)
    assert _SESSIONMAKER is not None  # for mypy
    return _SESSIONMAKER


def ensure_schema(settings: Settings | None = None) -> None:
    """Create missing tables; provisioning proper is handled outside this repo."""
    from ingestion.db.models import Base

    Base.metadata.create_all(bind=get_engine(settings))


@contextmanager
def session_scope(settings: Settings | None = None) -> Iterator[Session]:
    """Provide a transactional scope for DB operations."""
    session = get_sessionmaker(settings)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
