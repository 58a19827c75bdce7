"""
Sales Service - atomic sale posting

WHY: A sale is only real if the header, every line, the stock decrements and
the customer balance updates land together. This module is the single write
path for Sale/SaleItem rows and for the sale side of Product.stock_qty and
Customer balances.

POSTING (create_sale):
1. Validate the request (no database access): cart, quantities, amounts,
   payment type, payment covers total
2. Open the transactional scope (write lock taken up front)
3. Resolve user, customer and products; reserve the invoice number
4. Insert header, then per line: insert item (snapshot code/name), decrement stock
5. Update customer running totals (and credit for CREDIT sales); a sale
   without a named customer posts no balances
6. Commit. Any failure rolls the whole scope back.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import func

from ..errors import DuplicateDocumentNumberError, InsufficientPaymentError
from ..extensions import db
from ..models import Sale, SaleItem
from mypos.time_utils import day_bounds, utcnow
from . import customer_service, inventory_service, numbering_service, user_service
from .calculations import compute_change, compute_sale_totals, normalize_payment_type
from .concurrency import transactional_scope
from .ledger_schemas import LedgerContext, SaleHeader, SaleLineInput, SaleTotals


def _validate_sale_request(header: SaleHeader, lines: list[SaleLineInput]) -> tuple[str, SaleTotals]:
    totals = compute_sale_totals(
        lines,
        order_discount_cents=header.order_discount_cents,
        tax_cents=header.tax_cents,
    )
    payment_type = normalize_payment_type(header.payment_type)

    if header.amount_paid_cents < totals.total_cents:
        raise InsufficientPaymentError(
            "Amount paid is less than total",
            details={
                "amount_paid_cents": header.amount_paid_cents,
                "total_cents": totals.total_cents,
            },
        )

    return payment_type, totals


def create_sale(ctx: LedgerContext, header: SaleHeader, lines: list[SaleLineInput]) -> int:
    """
    Post a sale atomically and return the new sale id.

    Stock is decremented exactly once per line; customer totals (and credit,
    for CREDIT sales) are updated in the same transaction. Stock may go
    negative unless LEDGER_ALLOW_NEGATIVE_STOCK is disabled.

    Raises:
        ValidationError: empty cart, bad quantity/amount, unknown payment type,
            insufficient payment, duplicate invoice number, insufficient stock
        ReferentialError: unknown/inactive user, customer or product
        StorageFailure: database failure; nothing was persisted
    """
    lines = list(lines or [])
    payment_type, totals = _validate_sale_request(header, lines)
    allow_negative = current_app.config.get("LEDGER_ALLOW_NEGATIVE_STOCK", True)
    at = header.date or ctx.timestamp()

    with transactional_scope("create_sale") as session:
        user_service.require_active_user(ctx.user_id)
        if header.customer_id is not None:
            customer_service.require_active_customer(header.customer_id, lock=True)
        inventory_service.require_products(line.product_id for line in lines)

        invoice_number = header.invoice_number
        if invoice_number:
            if numbering_service.invoice_number_exists(invoice_number):
                raise DuplicateDocumentNumberError(
                    f"Invoice number {invoice_number} already exists",
                    details={"invoice_number": invoice_number},
                )
        else:
            invoice_number = numbering_service.next_invoice_number(on=at.date())

        sale = Sale(
            invoice_number=invoice_number,
            date=at,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            payment_type=payment_type,
            amount_paid_cents=header.amount_paid_cents,
            change_cents=compute_change(header.amount_paid_cents, totals.total_cents),
            user_id=ctx.user_id,
            customer_id=header.customer_id,
            notes=header.notes,
        )
        session.add(sale)
        session.flush()  # assigns sale.id

        for line, line_total in zip(lines, totals.line_totals):
            session.add(SaleItem(
                sale_id=sale.id,
                product_id=line.product_id,
                product_code=line.product_code,
                product_name=line.product_name,
                quantity=line.quantity,
                price_cents=line.price_cents,
                discount_cents=line.discount_cents,
                total_cents=line_total,
            ))
            session.flush()
            inventory_service.adjust_stock(
                line.product_id,
                -line.quantity,
                at=at,
                allow_negative=allow_negative,
            )

        customer_service.apply_sale_to_balances(header.customer_id, totals.total_cents, payment_type)

        sale_id = sale.id

    return sale_id


# =============================================================================
# QUERIES
# =============================================================================

def get_sale(sale_id: int) -> Sale | None:
    """Sale by id; items are loaded through Sale.items."""
    return db.session.get(Sale, sale_id)


def get_sale_by_invoice(invoice_number: str) -> Sale | None:
    return db.session.query(Sale).filter_by(invoice_number=invoice_number).first()


def list_sales(start_date: date, end_date: date | None = None) -> list[Sale]:
    """Sales whose date falls within [start_date, end_date] (inclusive), newest first."""
    start, end = day_bounds(start_date, end_date)
    return (
        db.session.query(Sale)
        .filter(Sale.date >= start, Sale.date < end)
        .order_by(Sale.date.desc(), Sale.id.desc())
        .all()
    )


def total_sales_for_day(day: date | None = None) -> int:
    start, end = day_bounds(day or utcnow().date())
    return int(
        db.session.query(func.coalesce(func.sum(Sale.total_cents), 0))
        .filter(Sale.date >= start, Sale.date < end)
        .scalar()
        or 0
    )


def list_customer_sales(customer_id: int) -> list[Sale]:
    return (
        db.session.query(Sale)
        .filter_by(customer_id=customer_id)
        .order_by(Sale.date.desc(), Sale.id.desc())
        .all()
    )
