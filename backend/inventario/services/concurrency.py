# Overview: Service-layer helpers for concurrency; row locks and retry on transient database errors.

from __future__ import annotations

import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Lock the selected rows until the surrounding transaction ends.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; stock changes stay safe there
    because they are guarded SQL updates, not read-modify-write.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run a unit of work, rolling back and retrying on lock/deadlock failures.

    func must be safe to call again from scratch: it opens its own reads and
    commits its own writes. Domain errors (ValidationError etc.) propagate on
    the first attempt.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
