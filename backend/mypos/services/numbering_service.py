# Overview: Service-layer operations for document numbering.

"""
Document numbers

- Invoices:  INV-YYYYMMDD-NNNN   (per-day counter, reserved atomically)
- Purchases: PUR-YYYYMMDD-HHMMSS (time stamp)
- Returns:   RET-YYYYMMDD-HHMMSS (time stamp)

Invoice numbers are reserved with a single UPDATE on document_sequences inside
the caller's transaction. The first reservation of a day seeds the counter
from the sales already recorded that day, so a database that predates the
sequence table continues its numbering.

Time-stamp numbers are unique to the second. When a second document of the
same kind is posted within the same second, a -2, -3, ... suffix is appended.
The check runs under the posting scope's write lock.
"""

from __future__ import annotations

from datetime import date, datetime

from sqlalchemy import func, update

from ..extensions import db
from ..models import DocumentSequence, Purchase, Return, Sale
from mypos.time_utils import day_bounds, utcnow


INVOICE_PREFIX = "INV"
PURCHASE_PREFIX = "PUR"
RETURN_PREFIX = "RET"

DOCUMENT_TYPE_INVOICE = "INVOICE"


def format_invoice_number(on: date, number: int) -> str:
    return f"{INVOICE_PREFIX}-{on:%Y%m%d}-{number:04d}"


def _sales_recorded_on(on: date) -> int:
    start, end = day_bounds(on)
    return (
        db.session.query(func.count(Sale.id))
        .filter(Sale.date >= start, Sale.date < end)
        .scalar()
        or 0
    )


def _current_next_number(document_type: str, on: date) -> int | None:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, sequence_date=on)
        .scalar()
    )


def _reserve(document_type: str, on: date) -> int:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.sequence_date == on,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current_next_number(document_type, on) - 1

    # First number of the day. The posting scope holds the write lock, so no
    # other writer can insert the same (type, day) row in between.
    first = _sales_recorded_on(on) + 1
    db.session.add(DocumentSequence(document_type=document_type, sequence_date=on, next_number=first + 1))
    db.session.flush()
    return first


def next_invoice_number(on: date | None = None) -> str:
    """
    Reserve the next invoice number for the day.

    Must be called inside the posting transaction; the reservation commits
    or rolls back with it.
    """
    on = on or utcnow().date()
    return format_invoice_number(on, _reserve(DOCUMENT_TYPE_INVOICE, on))


def peek_invoice_number(on: date | None = None) -> str:
    """Read-only preview of the next invoice number (checkout screen)."""
    on = on or utcnow().date()
    current = _current_next_number(DOCUMENT_TYPE_INVOICE, on)
    if current is None:
        current = _sales_recorded_on(on) + 1
    return format_invoice_number(on, current)


def _stamped_number(prefix: str, column, at: datetime | None) -> str:
    at = at or utcnow()
    base = f"{prefix}-{at:%Y%m%d-%H%M%S}"
    taken = {
        row[0]
        for row in db.session.query(column).filter(column.like(f"{base}%")).all()
    }
    if base not in taken:
        return base
    suffix = 2
    while f"{base}-{suffix}" in taken:
        suffix += 1
    return f"{base}-{suffix}"


def next_purchase_number(at: datetime | None = None) -> str:
    return _stamped_number(PURCHASE_PREFIX, Purchase.purchase_number, at)


def next_return_number(at: datetime | None = None) -> str:
    return _stamped_number(RETURN_PREFIX, Return.return_number, at)


def invoice_number_exists(invoice_number: str) -> bool:
    return db.session.query(Sale.id).filter_by(invoice_number=invoice_number).first() is not None
