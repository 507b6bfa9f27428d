"""Database engine and transaction helpers."""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Any, Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "postgresql://user:pass@db:5432/prices"


def create_engine_from_env() -> Engine:
    """Create an engine using the DATABASE_URL environment variable."""
    url = os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)
    return create_engine_for_url(url)


def create_engine_for_url(url: str, **kwargs: Any) -> Engine:
    kwargs.setdefault("future", True)
    if not url.startswith("sqlite"):
        kwargs.setdefault("pool_pre_ping", True)
    engine = create_engine(url, **kwargs)
    if engine.dialect.name == "sqlite":
        _enable_sqlite_savepoints(engine)
    return engine


def _enable_sqlite_savepoints(engine: Engine) -> None:
    # pysqlite issues its own BEGIN lazily, which breaks SAVEPOINT; take it over.
    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):  # pragma: no cover - driver hook
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):  # pragma: no cover - driver hook
        conn.exec_driver_sql("BEGIN")


@contextmanager
def transaction_scope(engine: Engine) -> Iterator[Connection]:
    """Provide a transactional scope: commit on success, roll back and re-raise on failure."""
    conn = engine.connect()
    trans = conn.begin()
    try:
        yield conn
        trans.commit()
    except Exception:
        trans.rollback()
        logger.debug("Transaction rolled back")
        raise
    finally:
        conn.close()
