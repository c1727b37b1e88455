"""Engine/session helpers for the SQL backend."""
from __future__ import annotations

from contextlib import contextmanager
import logging
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker, Session

from accounts.core.config import DatabaseSettings

Base = declarative_base()

logger = logging.getLogger("accounts.db")


def _sqlite_on_connect(dbapi_connection, _record) -> None:
    # Hand transaction control to SQLAlchemy so the "begin" hook below is used.
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _sqlite_on_begin(conn) -> None:
    # Take the write lock up front; a deferred BEGIN that later upgrades from a
    # read lock fails with "database is locked" instead of waiting its turn.
    conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_db_engine(config: DatabaseSettings) -> Engine:
    """Create the process-wide engine with a bounded connection pool."""
    url = config.sqlalchemy_url()
    if url.get_backend_name() == "sqlite":
        engine = create_engine(
            url,
            future=True,
            connect_args={"check_same_thread": False, "timeout": 30},
        )
        event.listen(engine, "connect", _sqlite_on_connect)
        event.listen(engine, "begin", _sqlite_on_begin)
        return engine

    # pool_size connections stay open; overflow covers the gap up to max_connections.
    pool_size = max(1, config.min_connections)
    engine = create_engine(
        url,
        future=True,
        pool_pre_ping=True,
        pool_size=pool_size,
        max_overflow=max(0, config.max_connections - pool_size),
        pool_timeout=config.acquire_timeout_secs,
    )
    logger.info(
        "Database pool ready for %s (size=%s, max=%s, timeout=%ss)",
        url.render_as_string(hide_password=True),
        pool_size,
        config.max_connections,
        config.acquire_timeout_secs,
    )
    return engine


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


@contextmanager
def session_scope(factory: sessionmaker) -> Iterator[Session]:
    """Borrow a connection for one store operation and always hand it back."""
    session: Session = factory()
    try:
        yield session
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
