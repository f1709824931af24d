# Overview: Transaction, row-locking and retry helpers shared by every write service.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import Contention
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    populate_existing() makes sure an object already in the identity map is
    refreshed from the locked row instead of keeping a stale quantity.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write() takes the
    database write lock there instead.
    """
    return query.with_for_update().populate_existing()


def begin_write() -> None:
    """
    Start a write unit of work with the configured lock timeout.

    - SQLite: BEGIN IMMEDIATE takes the database write lock up front, so two
      writers can never read the same quantity. The busy timeout set on the
      connection bounds the wait.
    - PostgreSQL: SET LOCAL lock_timeout bounds the wait on FOR UPDATE.
    - MySQL/MariaDB: innodb_lock_wait_timeout plays the same role.
    """
    connection = db.session.connection()
    dialect = connection.dialect.name
    timeout = float(current_app.config.get("LOCK_TIMEOUT_SECONDS", 5))

    if dialect == "sqlite":
        raw = connection.connection.dbapi_connection
        if not raw.in_transaction:
            db.session.execute(text("BEGIN IMMEDIATE"))
    elif dialect == "postgresql":
        db.session.execute(text(f"SET LOCAL lock_timeout = '{int(timeout * 1000)}ms'"))
    elif dialect in ("mysql", "mariadb"):
        db.session.execute(text(f"SET SESSION innodb_lock_wait_timeout = {max(1, int(timeout))}"))


def run_with_retry(func, *, operation: str | None = None, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB write with retry on concurrency-related failures.

    Any exception rolls the session back so no partial state survives.
    OperationalError (lock timeout, deadlock, "database is locked") and
    StaleDataError are retried with exponential backoff; once attempts are
    exhausted they surface as Contention. Every other error propagates
    unchanged.
    """
    if attempts is None:
        attempts = int(current_app.config.get("WRITE_RETRY_ATTEMPTS", 3))
    if backoff_base is None:
        backoff_base = float(current_app.config.get("WRITE_RETRY_BACKOFF", 0.1))
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise Contention(
                    "Inventory is busy, please retry",
                    {"operation": operation, "attempts": attempts},
                ) from exc
            current_app.logger.warning(
                "Lock contention in %s (attempt %d/%d): %s",
                operation or "write", attempt + 1, attempts, exc,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
