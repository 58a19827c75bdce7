# Overview: Transactional scope and write locking for ledger operations.

"""
Transactional scope

Every ledger posting (sale, purchase, return) runs inside exactly one
`transactional_scope`. The scope:

- takes the database write lock up front (SQLite: BEGIN IMMEDIATE), so two
  postings against the same products serialize instead of interleaving
- commits once, after the operation body finished
- rolls back on ANY exception and re-raises it; storage errors are wrapped
  in StorageFailure with the original exception chained as __cause__

There is no automatic retry. A retried posting must be an explicit caller
decision because a blind retry could double-count stock.
"""

from __future__ import annotations

from contextlib import contextmanager

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from ..errors import LedgerError, StorageFailure
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical reads.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the scope's
    BEGIN IMMEDIATE already holds the write lock.
    """
    return query.with_for_update()


def begin_write(session) -> None:
    """Take the write lock for the current session transaction."""
    if session.get_bind().dialect.name != "sqlite":
        return
    raw = session.connection().connection.driver_connection
    if not raw.in_transaction:
        session.execute(text("BEGIN IMMEDIATE"))


@contextmanager
def transactional_scope(operation: str):
    """
    Unit of work for one ledger operation.

    Usage:
        with transactional_scope("create_sale") as session:
            session.add(...)
    """
    session = db.session
    try:
        begin_write(session)
        yield session
        session.commit()
    except LedgerError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.warning("%s rolled back after storage error: %s", operation, exc)
        raise StorageFailure(
            f"{operation} failed: storage error",
            details={"operation": operation, "cause": exc.__class__.__name__},
        ) from exc
    except Exception:
        session.rollback()
        raise
