# Overview: Service-layer helpers for row locking, retries and unique-conflict detection.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import StoreError


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when an IntegrityError came from a UNIQUE constraint or index."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) == "23505" or getattr(orig, "sqlstate", None) == "23505":
        return True
    return "unique" in str(orig or exc).lower()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Raises StoreError once attempts run out.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Store operation failed after %s attempts: %s", attempts, exc)
                raise StoreError("Database operation failed") from exc
            time.sleep(backoff_base * (2 ** attempt))


def insert_with_conflict_retry(func, *, attempts: int = 3):
    """
    Run an insert-or-merge operation, retrying when a concurrent writer wins
    a unique constraint race.

    func must re-read current state on every call so the retry observes the
    winner's row and merges into it. Non-unique integrity failures propagate.
    """
    for attempt in range(attempts):
        try:
            return func()
        except IntegrityError as exc:
            db.session.rollback()
            if not is_unique_violation(exc):
                raise
            if attempt >= attempts - 1:
                raise StoreError("Could not resolve concurrent write conflict") from exc
            current_app.logger.info("Unique conflict on attempt %s, re-reading and merging", attempt + 1)
