# Overview: Row locking and retry helpers shared by the register services.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import TransientPersistenceError


def lock_for_update(query, *, read: bool = False):
    """
    Apply row-level locking for critical operations.

    read=False -> SELECT ... FOR UPDATE (exclusive, used by close)
    read=True  -> SELECT ... FOR SHARE (used by movement inserts so they
                  serialize against a concurrent close but not each other)

    Rows already in the identity map are refreshed from the locked read
    so a status committed by the previous lock holder is seen.

    NOTE: SQLite ignores both, the session version_id column still
    catches a lost update there.
    """
    return query.with_for_update(read=read).populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a whole DB operation with retry on transient failures.

    Retries on OperationalError (deadlocks, lock timeouts) and
    StaleDataError (optimistic locking conflicts) only. Business-rule
    errors propagate on the first attempt.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise TransientPersistenceError(
                    "Database is temporarily unavailable, please retry"
                ) from exc
            time.sleep(backoff_base * (2 ** attempt))
