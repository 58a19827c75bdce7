# Overview: Service-layer operations for purchases; inbound stock and supplier balances.

from __future__ import annotations

from datetime import date

from sqlalchemy import func

from ..errors import DuplicateDocumentNumberError, ReferentialError
from ..extensions import db
from ..models import Purchase, PurchaseItem, Supplier
from ..models.purchases import PAYMENT_STATUS_PAID
from mypos.time_utils import day_bounds
from . import inventory_service, numbering_service, user_service
from .calculations import compute_purchase_totals, derive_payment_status, require_non_negative
from .concurrency import transactional_scope
from .ledger_schemas import LedgerContext, PurchaseHeader, PurchaseLineInput


def require_active_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None:
        raise ReferentialError(f"Supplier {supplier_id} not found", details={"supplier_id": supplier_id})
    if not supplier.is_active:
        raise ReferentialError(f"Supplier {supplier_id} is inactive", details={"supplier_id": supplier_id})
    return supplier


def create_purchase(ctx: LedgerContext, header: PurchaseHeader, lines: list[PurchaseLineInput]) -> int:
    """
    Post a purchase (goods received from a supplier) and return its id.

    Every line increments stock and overwrites the product's cost price with
    the line cost. payment_status is derived from amount paid vs total.
    """
    lines = list(lines or [])
    totals = compute_purchase_totals(lines, tax_cents=header.tax_cents)
    require_non_negative(header.amount_paid_cents, "amount_paid_cents")
    at = header.date or ctx.timestamp()

    with transactional_scope("create_purchase") as session:
        user_service.require_active_user(ctx.user_id)
        require_active_supplier(header.supplier_id)
        inventory_service.require_products(line.product_id for line in lines)

        purchase_number = header.purchase_number
        if purchase_number:
            exists = session.query(Purchase.id).filter_by(purchase_number=purchase_number).first()
            if exists:
                raise DuplicateDocumentNumberError(
                    f"Purchase number {purchase_number} already exists",
                    details={"purchase_number": purchase_number},
                )
        else:
            purchase_number = numbering_service.next_purchase_number(at)

        purchase = Purchase(
            purchase_number=purchase_number,
            supplier_id=header.supplier_id,
            date=at,
            subtotal_cents=totals.subtotal_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            payment_status=derive_payment_status(header.amount_paid_cents, totals.total_cents),
            amount_paid_cents=header.amount_paid_cents,
            notes=header.notes,
            user_id=ctx.user_id,
        )
        session.add(purchase)
        session.flush()

        for line, line_total in zip(lines, totals.line_totals):
            session.add(PurchaseItem(
                purchase_id=purchase.id,
                product_id=line.product_id,
                product_code=line.product_code,
                product_name=line.product_name,
                quantity=line.quantity,
                cost_price_cents=line.cost_price_cents,
                total_cents=line_total,
            ))
            session.flush()
            inventory_service.adjust_stock(line.product_id, line.quantity, at=at)
            inventory_service.apply_purchase_cost(line.product_id, line.cost_price_cents, at=at)

        purchase_id = purchase.id

    return purchase_id


def get_purchase(purchase_id: int) -> Purchase | None:
    return db.session.get(Purchase, purchase_id)


def list_purchases(
    start_date: date | None = None,
    end_date: date | None = None,
    supplier_id: int | None = None,
) -> list[Purchase]:
    query = db.session.query(Purchase)
    if start_date is not None:
        start, end = day_bounds(start_date, end_date)
        query = query.filter(Purchase.date >= start, Purchase.date < end)
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    return query.order_by(Purchase.date.desc(), Purchase.id.desc()).all()


def supplier_total_purchases(supplier_id: int) -> int:
    return int(
        db.session.query(func.coalesce(func.sum(Purchase.total_cents), 0))
        .filter(Purchase.supplier_id == supplier_id)
        .scalar()
        or 0
    )


def supplier_outstanding_balance(supplier_id: int) -> int:
    """What the store still owes the supplier: Σ (total - paid) over unpaid purchases."""
    return int(
        db.session.query(
            func.coalesce(func.sum(Purchase.total_cents - Purchase.amount_paid_cents), 0)
        )
        .filter(
            Purchase.supplier_id == supplier_id,
            Purchase.payment_status != PAYMENT_STATUS_PAID,
        )
        .scalar()
        or 0
    )
