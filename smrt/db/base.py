"""
SQLAlchemy declarative base and the audit columns shared by every table.

Each table gets a store-generated UUID primary key plus created_at/updated_at
timestamps taken from the store clock. updated_at is refreshed by a trigger
installed with the table, so every UPDATE bumps it, including writes that
bypass the ORM. The same triggers reject any UPDATE that rewrites id or
created_at.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime

from sqlalchemy import DateTime, MetaData, Table, Uuid, event
from sqlalchemy.engine import Connection
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql.expression import FunctionElement

from smrt.errors import IMMUTABLE_COLUMN_MESSAGE

logger = logging.getLogger("smrt.db")

# Naming conventions keep constraint names identical across PostgreSQL and SQLite.
_NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

_PG_TRIGGER_FUNCTION = "smrt_set_updated_at"
_SQLITE_NOW = "strftime('%Y-%m-%d %H:%M:%f', 'now')"
# one millisecond past the previous value at least, so back-to-back updates still advance
_SQLITE_NEXT_UPDATE = (
    "strftime('%Y-%m-%d %H:%M:%f', max(julianday('now'), julianday({previous}) + 1.0 / 86400000))"
)


class Base(DeclarativeBase):
    """Declarative base for ORM models."""

    metadata = MetaData(naming_convention=_NAMING_CONVENTION)

    # fetch server-side defaults and trigger-assigned values via RETURNING
    __mapper_args__ = {"eager_defaults": True}


class gen_random_uuid(FunctionElement):
    """Server-side random UUID, usable as a column server_default."""

    type = Uuid()
    inherit_cache = True
    name = "gen_random_uuid"


@compiles(gen_random_uuid)
def _gen_random_uuid_default(element, compiler, **kw):
    return "gen_random_uuid()"


@compiles(gen_random_uuid, "sqlite")
def _gen_random_uuid_sqlite(element, compiler, **kw):
    # 32 hex digits, the storage format of Uuid on stores without a native type
    return "(lower(hex(randomblob(16))))"


class store_clock(FunctionElement):
    """Current store time at sub-second resolution, read when the statement runs."""

    type = DateTime(timezone=True)
    inherit_cache = True
    name = "store_clock"


@compiles(store_clock)
def _store_clock_default(element, compiler, **kw):
    return "clock_timestamp()"


@compiles(store_clock, "sqlite")
def _store_clock_sqlite(element, compiler, **kw):
    # CURRENT_TIMESTAMP only has second resolution on SQLite
    return f"({_SQLITE_NOW})"


class update_clock(FunctionElement):
    """Store time for an UPDATE's updated_at, always later than the row's previous value."""

    type = DateTime(timezone=True)
    inherit_cache = True
    name = "update_clock"


@compiles(update_clock)
def _update_clock_default(element, compiler, **kw):
    return "clock_timestamp()"


@compiles(update_clock, "sqlite")
def _update_clock_sqlite(element, compiler, **kw):
    # the SQLite clock ticks in milliseconds; the AFTER UPDATE trigger computes the same value
    return f"({_SQLITE_NEXT_UPDATE.format(previous='updated_at')})"


class IdMixin:
    """Store-generated UUID primary key."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, server_default=gen_random_uuid())


class TimestampMixin:
    """Common timestamp columns in the schema."""

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=store_clock(), nullable=False)
    # onupdate keeps ORM flushes returning the new value; the trigger covers every other writer
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=store_clock(),
        onupdate=update_clock(),
        nullable=False,
    )


def _pg_trigger_function(target: MetaData, connection: Connection, **kw) -> None:
    if connection.dialect.name != "postgresql":
        return
    connection.exec_driver_sql(
        f"""
        CREATE OR REPLACE FUNCTION {_PG_TRIGGER_FUNCTION}() RETURNS trigger AS $$
        BEGIN
            IF NEW.id IS DISTINCT FROM OLD.id OR NEW.created_at IS DISTINCT FROM OLD.created_at THEN
                RAISE EXCEPTION USING
                    MESSAGE = '{IMMUTABLE_COLUMN_MESSAGE}: ' || TG_TABLE_NAME,
                    ERRCODE = 'check_violation';
            END IF;
            NEW.updated_at = clock_timestamp();
            RETURN NEW;
        END;
        $$ LANGUAGE plpgsql
        """
    )


def _updated_at_trigger(target: Table, connection: Connection, **kw) -> None:
    name = f"{target.name}_set_updated_at"
    dialect = connection.dialect.name
    if dialect == "postgresql":
        connection.exec_driver_sql(
            f"CREATE TRIGGER {name} BEFORE UPDATE ON {target.name} "
            f"FOR EACH ROW EXECUTE FUNCTION {_PG_TRIGGER_FUNCTION}()"
        )
    elif dialect == "sqlite":
        connection.exec_driver_sql(
            f"""
            CREATE TRIGGER {target.name}_immutable_columns BEFORE UPDATE ON {target.name} FOR EACH ROW
            WHEN NEW.id IS NOT OLD.id OR NEW.created_at IS NOT OLD.created_at
            BEGIN
                SELECT RAISE(ABORT, '{IMMUTABLE_COLUMN_MESSAGE}: {target.name}');
            END
            """
        )
        # recursive_triggers is off by default, so the inner UPDATE does not re-fire
        connection.exec_driver_sql(
            f"""
            CREATE TRIGGER {name} AFTER UPDATE ON {target.name} FOR EACH ROW
            BEGIN
                UPDATE {target.name} SET updated_at = {_SQLITE_NEXT_UPDATE.format(previous="OLD.updated_at")}
                WHERE id = NEW.id;
            END
            """
        )
    else:
        logger.warning("No updated_at trigger for dialect %s on table %s", dialect, target.name)
        return
    logger.debug("Installed updated_at trigger on %s", target.name)


# PUBLIC_INTERFACE
def install_updated_at_triggers(metadata: MetaData) -> None:
    """Attach the updated_at refresh trigger to every table that has the column."""
    event.listen(metadata, "before_create", _pg_trigger_function)
    for table in metadata.tables.values():
        if "updated_at" in table.c:
            event.listen(table, "after_create", _updated_at_trigger)
