"""
Error taxonomy for the storefront data layer.

Constraint violations raised by the store are translated into one of three
storage errors so callers can tell "already exists" apart from "still
referenced" without parsing driver messages. The store's own message is kept
verbatim and the driver exception stays reachable through ``orig`` and
``__cause__``.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, Optional, Type

from sqlalchemy.exc import DBAPIError, DataError, IntegrityError


class SmrtError(Exception):
    """Root of all errors raised by this package."""


class ConfigurationError(SmrtError):
    """Required configuration is missing or malformed at startup."""


class StorageError(SmrtError):
    """A write was rejected by a storage-level constraint."""

    def __init__(self, message: str, orig: Optional[BaseException] = None, constraint: Optional[str] = None):
        super().__init__(message)
        self.orig = orig
        self.constraint = constraint


class DomainViolation(StorageError):
    """Value outside an enumerated or checked domain (or a required value missing)."""


class UniquenessViolation(StorageError):
    """Write collided with an existing unique value."""


class ReferentialIntegrityViolation(StorageError):
    """Delete of a referenced parent, or insert pointing at a missing parent."""


# SQLSTATE codes reported by PostgreSQL drivers.
_PG_CODES = {
    "23505": UniquenessViolation,
    "23503": ReferentialIntegrityViolation,
    "23001": ReferentialIntegrityViolation,
    "23514": DomainViolation,
    "23502": DomainViolation,
    "22P02": DomainViolation,
    "22023": DomainViolation,
}

# Raised by the store when an UPDATE tries to rewrite id or created_at.
IMMUTABLE_COLUMN_MESSAGE = "immutable column changed"

# Message prefixes reported by SQLite.
_SQLITE_MESSAGES = (
    (IMMUTABLE_COLUMN_MESSAGE, DomainViolation),
    ("UNIQUE constraint failed", UniquenessViolation),
    ("FOREIGN KEY constraint failed", ReferentialIntegrityViolation),
    ("CHECK constraint failed", DomainViolation),
    ("NOT NULL constraint failed", DomainViolation),
)


def _sqlstate(orig: BaseException) -> Optional[str]:
    # psycopg2 exposes pgcode, psycopg 3 exposes sqlstate
    return getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)


def _constraint_name(orig: BaseException) -> Optional[str]:
    diag = getattr(orig, "diag", None)
    return getattr(diag, "constraint_name", None) if diag is not None else None


# PUBLIC_INTERFACE
def classify_db_error(exc: DBAPIError) -> Optional[StorageError]:
    """
    Map a SQLAlchemy integrity/data error onto the storage error taxonomy.

    Returns:
        StorageError | None: the classified error (not raised), or None when the
        exception is not a recognised constraint violation.
    """
    if not isinstance(exc, (IntegrityError, DataError)):
        return None

    orig = exc.orig
    message = str(orig) if orig is not None else str(exc)
    error_cls: Optional[Type[StorageError]] = None

    code = _sqlstate(orig) if orig is not None else None
    if code:
        error_cls = _PG_CODES.get(code)
    else:
        for prefix, cls in _SQLITE_MESSAGES:
            if message.startswith(prefix):
                error_cls = cls
                break

    if error_cls is None:
        return None
    return error_cls(message, orig=orig, constraint=_constraint_name(orig) if orig is not None else None)


# PUBLIC_INTERFACE
@contextmanager
def storage_errors() -> Iterator[None]:
    """Re-raise recognised constraint violations from the block as StorageError."""
    try:
        yield
    except (IntegrityError, DataError) as exc:
        error = classify_db_error(exc)
        if error is None:
            raise
        raise error from exc
