"""
Database engine/session management.

The engine is configured explicitly at process start (``configure``) from the
validated settings, never as a side effect of importing this module.

SQLite is supported for development and tests; foreign-key enforcement is
switched on for every SQLite connection so delete policies behave the same as
on PostgreSQL.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Iterator, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from smrt.config import Settings
from smrt.db.base import Base
from smrt.errors import ConfigurationError, storage_errors

logger = logging.getLogger("smrt.db.session")

_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


# PUBLIC_INTERFACE
def normalize_database_url(raw: str) -> str:
    """Accept `psql postgresql://...` and `postgres://...` forms and return a SQLAlchemy URL."""
    raw = raw.strip()

    # Common format: "psql postgresql://...."
    if raw.startswith("psql "):
        raw = raw[len("psql ") :].strip()

    if raw.startswith("postgres://"):
        raw = "postgresql://" + raw[len("postgres://") :]

    return raw


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


# PUBLIC_INTERFACE
def create_engine_for(url: str, echo: bool = False, connect_timeout: Optional[int] = None) -> Engine:
    """
    Create an engine for the given URL.

    Args:
        url: database URL (normalised first).
        echo: log every SQL statement through the sqlalchemy.engine logger.
        connect_timeout: seconds to wait for a connection, handed to the driver.
    """
    url = normalize_database_url(url)
    connect_args = {}
    if url.startswith("sqlite"):
        if connect_timeout is not None:
            connect_args["timeout"] = connect_timeout
    elif connect_timeout is not None:
        connect_args["connect_timeout"] = connect_timeout

    engine = create_engine(url, echo=echo, pool_pre_ping=True, connect_args=connect_args)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


# PUBLIC_INTERFACE
def configure_engine(url: str, echo: bool = False, connect_timeout: Optional[int] = None) -> Engine:
    """Install the process-wide engine and session factory."""
    global _engine, _session_factory

    if _engine is not None:
        _engine.dispose()
    _engine = create_engine_for(url, echo=echo, connect_timeout=connect_timeout)
    _session_factory = make_session_factory(_engine)
    logger.info("Database engine configured for %s", _engine.url.render_as_string(hide_password=True))
    return _engine


# PUBLIC_INTERFACE
def configure(settings: Settings) -> Engine:
    """Configure the engine from validated settings."""
    return configure_engine(
        settings.database_url,
        echo=settings.database_echo,
        connect_timeout=settings.database_connect_timeout,
    )


def get_engine() -> Engine:
    if _engine is None:
        raise ConfigurationError("Database engine is not configured; call smrt.db.session.configure() at startup")
    return _engine


def get_session_factory() -> sessionmaker:
    if _session_factory is None:
        raise ConfigurationError("Database engine is not configured; call smrt.db.session.configure() at startup")
    return _session_factory


# PUBLIC_INTERFACE
def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency that yields a SQLAlchemy session and ensures it's closed."""
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


# PUBLIC_INTERFACE
@contextmanager
def transaction(factory: Optional[sessionmaker] = None) -> Iterator[Session]:
    """
    Run a unit of work in a single transaction.

    Commits when the block exits normally and rolls back on any exception, so a
    multi-statement write is never left half applied. Constraint violations are
    re-raised as the matching StorageError, chained to the driver error.
    """
    factory = factory or get_session_factory()
    with storage_errors():
        with factory.begin() as session:
            yield session


# PUBLIC_INTERFACE
def create_schema(engine: Optional[Engine] = None) -> None:
    """Create every table, enum, index and updated_at trigger that does not exist yet."""
    engine = engine or get_engine()
    # models must be imported so their tables are registered on the metadata
    import smrt.db.models  # noqa: F401

    Base.metadata.create_all(engine)
    logger.info("Schema created on %s", engine.url.render_as_string(hide_password=True))


# PUBLIC_INTERFACE
def drop_schema(engine: Optional[Engine] = None) -> None:
    """Drop every table owned by the metadata."""
    engine = engine or get_engine()
    import smrt.db.models  # noqa: F401

    Base.metadata.drop_all(engine)


# PUBLIC_INTERFACE
def db_healthcheck() -> bool:
    """
    Perform a simple DB liveness check.

    Returns:
        bool: True if DB is reachable and responds to `SELECT 1`, else False.
    """
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except (SQLAlchemyError, ConfigurationError) as exc:
        logger.warning("Database healthcheck failed: %s", exc)
        return False
