# Overview: Transaction scope, row locking and caller-side retry helpers.

from __future__ import annotations

import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import ConcurrencyConflictError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Optimistic version columns still catch lost updates on SQLite.
    """
    return query.with_for_update()


@contextmanager
def transaction_scope():
    """
    One atomic unit of work on the shared session.

    Commits when the block finishes, rolls back on any exception and
    re-raises it. Optimistic-lock failures surface as ConcurrencyConflictError.
    Helpers called inside the block must not commit on their own.
    """
    session = db.session
    try:
        yield session
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        raise ConcurrencyConflictError(
            "Record was modified by another transaction; please retry",
            details={"reason": str(exc)},
        ) from exc
    except Exception:
        session.rollback()
        raise


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute an operation with retry on concurrency-related failures.

    Meant for entry points (CLI commands, request handlers). Services never
    call this themselves.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, ConcurrencyConflictError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
