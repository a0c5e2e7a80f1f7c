# Overview: Service-layer helpers for locking, write transactions and retrying storage conflicts.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import ServiceError


class StorageUnavailableError(ServiceError):
    """Raised when the database stays locked/unreachable after all retries."""
    code = "STORAGE_UNAVAILABLE"
    retryable = True


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    takes the database write lock there instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Open the current session's transaction as a writer.

    SQLite: issues BEGIN IMMEDIATE so concurrent writers queue on the
    database lock (bounded by the busy timeout) instead of interleaving
    reads and writes. No-op when the connection already holds a
    transaction, and on other dialects, which rely on lock_for_update().
    """
    connection = db.session.connection()
    if connection.dialect.name != "sqlite":
        return
    dbapi_connection = connection.connection.dbapi_connection
    if not dbapi_connection.in_transaction:
        connection.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (locks, busy timeout) and StaleDataError
    (optimistic locking conflicts) with exponential backoff. When attempts
    run out the failure surfaces as StorageUnavailableError. Any other
    exception rolls the session back and propagates unchanged.
    """
    if attempts is None:
        attempts = int(current_app.config.get("DB_RETRY_ATTEMPTS", 3))
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Storage operation failed after %s attempts: %s", attempts, exc
                )
                raise StorageUnavailableError(
                    "Storage temporarily unavailable",
                    details={"attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Storage conflict on attempt %s/%s, retrying: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
