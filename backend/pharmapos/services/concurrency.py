# Overview: Service-layer operations for concurrency; row locks, write transactions and retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Driver messages that mean "someone else holds the lock, try again"
_LOCK_CONTENTION_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "could not serialize access",
    "lock wait timeout",
)

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available
_LOCK_CONTENTION_SQLSTATES = {"40001", "40P01", "55P03"}


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    takes the database write lock up front instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the current session's transaction as a writer.

    On SQLite this issues BEGIN IMMEDIATE so that concurrent sales
    serialize on the write lock before reading stock. Other backends rely
    on lock_for_update() row locks.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def is_lock_contention(exc: Exception) -> bool:
    """
    True for failures caused by competing transactions (deadlocks, busy
    locks, serialization failures, optimistic version conflicts).

    Connectivity failures are not contention and are never retried.
    """
    if isinstance(exc, StaleDataError):
        return True
    if not isinstance(exc, DBAPIError):
        return False
    if exc.connection_invalidated:
        return False

    orig = exc.orig
    sqlstate = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if sqlstate in _LOCK_CONTENTION_SQLSTATES:
        return True

    message = str(orig).lower()
    return any(marker in message for marker in _LOCK_CONTENTION_MARKERS)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries OperationalError / StaleDataError only when is_lock_contention()
    says so; the session is rolled back before each new attempt.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if not is_lock_contention(exc) or attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after lock contention (attempt %d/%d): %s",
                attempt + 1, attempts, exc,
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
