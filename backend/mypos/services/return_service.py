"""
Return Service - customer returns against a posted sale

A return is its own document with its own stock movement:
- stock is incremented for every returned line
- the original sale (header, items, stock decrement) is never modified
- the sale's invoice number is copied onto the return at posting time
- customer balances are not touched

With LEDGER_ENFORCE_RETURN_LIMITS on (default), the quantity returned per
product across all returns of a sale can never exceed the quantity sold on
that sale.
"""

from __future__ import annotations

from collections import OrderedDict
from datetime import date

from flask import current_app
from sqlalchemy import func

from ..errors import DuplicateDocumentNumberError, ReferentialError, ReturnQuantityExceededError
from ..extensions import db
from ..models import Return, ReturnItem, Sale, SaleItem
from mypos.time_utils import day_bounds
from . import inventory_service, numbering_service, user_service
from .calculations import compute_return_line_totals, quantities_by_product
from .concurrency import lock_for_update, transactional_scope
from .ledger_schemas import LedgerContext, ReturnHeader, ReturnItemInput


def _require_sale(sale_id: int, *, lock: bool = False) -> Sale:
    query = db.session.query(Sale).filter_by(id=sale_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if sale is None:
        raise ReferentialError(f"Sale {sale_id} not found", details={"sale_id": sale_id})
    return sale


def _sold_quantities(sale_id: int) -> dict[int, int]:
    rows = (
        db.session.query(SaleItem.product_id, func.sum(SaleItem.quantity))
        .filter(SaleItem.sale_id == sale_id)
        .group_by(SaleItem.product_id)
        .all()
    )
    return {product_id: int(qty) for product_id, qty in rows}


def _returned_quantities(sale_id: int) -> dict[int, int]:
    rows = (
        db.session.query(ReturnItem.product_id, func.sum(ReturnItem.quantity))
        .join(Return, Return.id == ReturnItem.return_id)
        .filter(Return.sale_id == sale_id)
        .group_by(ReturnItem.product_id)
        .all()
    )
    return {product_id: int(qty) for product_id, qty in rows}


def returnable_quantities(sale_id: int) -> "OrderedDict[int, int]":
    """
    Remaining returnable quantity per product on a sale (sold - already returned).

    Raises ReferentialError for an unknown sale.
    """
    sale = _require_sale(sale_id)
    returned = _returned_quantities(sale.id)
    remaining: OrderedDict[int, int] = OrderedDict()
    for product_id, sold in quantities_by_product(sale.items).items():
        remaining[product_id] = max(0, sold - returned.get(product_id, 0))
    return remaining


def _check_return_limits(sale_id: int, items: list[ReturnItemInput]) -> None:
    sold = _sold_quantities(sale_id)
    returned = _returned_quantities(sale_id)
    for product_id, requested in quantities_by_product(items).items():
        available = sold.get(product_id, 0) - returned.get(product_id, 0)
        if requested > available:
            raise ReturnQuantityExceededError(
                f"Cannot return {requested} of product {product_id}; {max(0, available)} returnable",
                details={
                    "sale_id": sale_id,
                    "product_id": product_id,
                    "requested_quantity": requested,
                    "sold_quantity": sold.get(product_id, 0),
                    "returned_quantity": returned.get(product_id, 0),
                },
            )


def create_return(ctx: LedgerContext, header: ReturnHeader, items: list[ReturnItemInput]) -> int:
    """Post a return against an existing sale and return the new return id."""
    items = list(items or [])
    line_totals = compute_return_line_totals(items)
    enforce_limits = current_app.config.get("LEDGER_ENFORCE_RETURN_LIMITS", True)
    at = header.return_date or ctx.timestamp()

    with transactional_scope("create_return") as session:
        user_service.require_active_user(ctx.user_id)
        sale = _require_sale(header.sale_id, lock=True)
        inventory_service.require_products(item.product_id for item in items)

        if enforce_limits:
            _check_return_limits(sale.id, items)

        return_number = header.return_number
        if return_number:
            if session.query(Return.id).filter_by(return_number=return_number).first():
                raise DuplicateDocumentNumberError(
                    f"Return number {return_number} already exists",
                    details={"return_number": return_number},
                )
        else:
            return_number = numbering_service.next_return_number(at)

        return_doc = Return(
            return_number=return_number,
            sale_id=sale.id,
            original_invoice_number=sale.invoice_number,
            return_date=at,
            total_amount_cents=sum(line_totals),
            reason=header.reason,
            processed_by_user_id=ctx.user_id,
            notes=header.notes,
        )
        session.add(return_doc)
        session.flush()

        for item, line_total in zip(items, line_totals):
            session.add(ReturnItem(
                return_id=return_doc.id,
                product_id=item.product_id,
                product_name=item.product_name,
                quantity=item.quantity,
                price_cents=item.price_cents,
                total_cents=line_total,
            ))
            session.flush()
            inventory_service.adjust_stock(item.product_id, item.quantity, at=at)

        return_id = return_doc.id

    return return_id


def get_return(return_id: int) -> Return | None:
    return db.session.get(Return, return_id)


def get_sale_returns(sale_id: int) -> list[Return]:
    return (
        db.session.query(Return)
        .filter_by(sale_id=sale_id)
        .order_by(Return.return_date.asc(), Return.id.asc())
        .all()
    )


def list_returns(start_date: date | None = None, end_date: date | None = None) -> list[Return]:
    query = db.session.query(Return)
    if start_date is not None:
        start, end = day_bounds(start_date, end_date)
        query = query.filter(Return.return_date >= start, Return.return_date < end)
    return query.order_by(Return.return_date.desc(), Return.id.desc()).all()
