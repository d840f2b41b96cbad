# Overview: Service-layer transaction and serialization helpers.

"""
Write serialization for the billing core.

The engine assumes one logical writer per database. Every mutating service
call enters ``atomic()``, which holds a process-wide re-entrant lock for the
whole unit of work and owns exactly one database transaction:

- only the outermost ``atomic()`` commits;
- any exception at any depth rolls the whole unit back;
- SQLAlchemy errors that are not transient are re-raised as StorageFailure.

``lock_for_update`` additionally asks the database for row locks, which
PostgreSQL/MySQL honor and SQLite ignores (the process lock covers it there).
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import StorageFailure
from ..extensions import db

_write_lock = threading.RLock()
_state = threading.local()

RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def _depth() -> int:
    return getattr(_state, "depth", 0)


def in_atomic() -> bool:
    return _depth() > 0


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic():
    """
    Run a block as one serialized, all-or-nothing unit of work.

    Nested blocks join the outer unit; they neither commit nor roll back on
    their own.
    """
    depth = _depth()
    with _write_lock:
        _state.depth = depth + 1
        try:
            yield db.session
            if depth == 0:
                db.session.commit()
        except RETRYABLE_ERRORS:
            if depth == 0:
                db.session.rollback()
            raise
        except SQLAlchemyError as exc:
            if depth == 0:
                db.session.rollback()
                raise StorageFailure(
                    "Database rejected the operation; nothing was applied",
                    details={"reason": exc.__class__.__name__},
                ) from exc
            raise
        except BaseException:
            if depth == 0:
                db.session.rollback()
            raise
        finally:
            _state.depth = depth


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a unit of work with retry on concurrency-related failures.

    Retries on OperationalError (locks) and StaleDataError (optimistic
    locking conflicts). Inside an enclosing atomic() the call is made once:
    retrying is the outermost caller's job.
    """
    if in_atomic():
        return func()

    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StorageFailure(
                    "Database stayed busy; operation abandoned",
                    details={"reason": exc.__class__.__name__, "attempts": attempts},
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
