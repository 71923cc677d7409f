# Overview: Transaction helpers shared by every multi-write service operation.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..errors import StorageFailureError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Rows that also carry a version_id column stay protected on SQLite through
    the optimistic version check at flush time.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must re-read everything it
    depends on, since the session is rolled back between attempts.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise StorageFailureError("Database is busy, please retry") from exc
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise StorageFailureError("Database is busy, please retry") from last_exc


def commit_or_fail(message: str = "Failed to save changes") -> None:
    """
    Commit the current session as a single unit.

    Any SQLAlchemy failure rolls the whole unit back and surfaces as
    StorageFailureError. Concurrency failures are re-raised untouched so
    run_with_retry can handle them.
    """
    try:
        db.session.commit()
    except (OperationalError, StaleDataError):
        db.session.rollback()
        raise
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise StorageFailureError(message) from exc


_named_locks: dict[str, threading.Lock] = {}
_named_locks_guard = threading.Lock()


@contextmanager
def exclusive(name: str):
    """
    Process-wide mutual exclusion for whole-table recomputes.

    Only one holder per name at a time; other callers block until it is released.
    """
    with _named_locks_guard:
        lock = _named_locks.setdefault(name, threading.Lock())
    with lock:
        yield
