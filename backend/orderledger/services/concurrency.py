# Overview: Service-layer helpers for locking, write serialization and bounded retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import ConcurrencyConflict, LedgerError, PersistenceError


_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize",
    "lock wait timeout",
    "lock not available",
)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() covers it there.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Start the unit of work as a writer.

    On SQLite this issues BEGIN IMMEDIATE so concurrent writers queue on the
    database write lock before they read anything they will decide on. Other
    backends rely on lock_for_update() row locks instead.
    """
    conn = db.session.connection()
    if conn.dialect.name != "sqlite":
        return
    if not conn.connection.dbapi_connection.in_transaction:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def _is_contention(exc: Exception) -> bool:
    if isinstance(exc, (StaleDataError, ConcurrencyConflict)):
        return True
    if isinstance(exc, OperationalError):
        message = str(exc.orig if exc.orig is not None else exc).lower()
        return any(marker in message for marker in _CONTENTION_MARKERS)
    return False


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries lock contention (OperationalError), StaleDataError (optimistic
    version conflicts) and ConcurrencyConflict (failed compare-and-set).
    Any exception rolls the session back before it propagates. When the
    retry budget is exhausted the caller gets ConcurrencyConflict.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)

    for attempt in range(attempts):
        try:
            return func()
        except Exception as exc:
            db.session.rollback()
            if not _is_contention(exc):
                raise
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Giving up after %s attempts on concurrent update: %s", attempts, exc
                )
                if isinstance(exc, ConcurrencyConflict):
                    raise
                raise ConcurrencyConflict(details={"attempts": attempts}) from exc
            time.sleep(backoff_base * (2 ** attempt))


def run_in_transaction(func, *, context: dict | None = None, **retry_kwargs):
    """
    run_with_retry() plus translation of leftover database failures.

    Domain errors pass through untouched. Any other SQLAlchemyError is
    logged with the supplied context and surfaced as PersistenceError, so
    driver messages and connection details never reach the caller.
    """
    try:
        return run_with_retry(func, **retry_kwargs)
    except LedgerError:
        raise
    except SQLAlchemyError as exc:
        current_app.logger.error(
            "Persistence failure %s: %s", context or {}, exc.__class__.__name__, exc_info=True
        )
        raise PersistenceError("Failed to save changes", details=dict(context or {})) from exc
