# Overview: Transaction boundaries, row locking, and retry helpers for service-layer writes.

from __future__ import annotations

import time
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; unit_of_work() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def _begin_write_transaction() -> None:
    # SQLite only serializes writers if the write lock is taken before the
    # first read; a deferred BEGIN lets two approvals read the same state.
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def _has_pending_changes() -> bool:
    session = db.session
    if session.new or session.deleted:
        return True
    # dirty also lists objects whose attributes were set to the same value
    return any(session.is_modified(obj) for obj in session.dirty)


@contextmanager
def unit_of_work() -> Iterator:
    """
    Bracket a multi-step mutation in one transaction.

    - Normal exit -> commit
    - Any exception -> rollback, then re-raise

    Every read and write performed inside the block belongs to the same
    transaction, so either all effects persist or none do.

    Raises RuntimeError if the session holds uncommitted changes on entry.
    """
    if _has_pending_changes():
        raise RuntimeError("unit_of_work() entered with uncommitted session changes")

    # End any implicit transaction left open by earlier reads
    db.session.rollback()
    try:
        _begin_write_transaction()
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def conditional_update(query, values: dict) -> bool:
    """
    Apply an UPDATE that succeeds only if the query's WHERE clause still holds.

    Returns True when exactly one row changed. The precondition is
    re-evaluated by the database at write time, so two concurrent callers
    can never both observe success.
    """
    updated = query.update(values, synchronize_session=False)
    return updated == 1


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Business errors propagate immediately.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
