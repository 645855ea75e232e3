# Overview: Service-layer helpers for optimistic, condition-checked writes.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

logger = logging.getLogger(__name__)


def guarded_update(model, *, where: dict, values: dict) -> int:
    """
    Set-based UPDATE that only touches rows still in the expected prior state.

    `where` maps column names to expected values; `values` maps column names
    to new values. Returns the affected row count. Zero means another actor
    already moved the row on and the caller must re-read state.

    Models with a version counter get it bumped so ORM-level writers holding
    a stale copy fail instead of overwriting.
    """
    query = db.session.query(model)
    for column, expected in where.items():
        query = query.filter(getattr(model, column) == expected)

    values = dict(values)
    version_col = getattr(model, "version_id", None)
    if version_col is not None:
        values["version_id"] = version_col + 1

    return query.update(values, synchronize_session=False)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts).
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
            logger.warning("Retrying after concurrency conflict (attempt %s): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc
