# Overview: Transaction helpers for row locking and retrying on lock contention.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_immediate() takes the
    database write lock up front instead.
    """
    return query.with_for_update()


def begin_immediate() -> None:
    """Open the transaction with the SQLite write lock held (no-op elsewhere)."""
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on lock/deadlock failures.

    Any exception rolls the session back, so a failed operation never leaves
    partial writes behind. Only OperationalError is retried.
    """
    if attempts is None:
        attempts = current_app.config.get("TX_RETRY_ATTEMPTS", 3)

    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Transaction retry %s/%s after database error: %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
