# Overview: Service-layer operations for inventory; stock mutation rules and low-stock reads.

# backend/mypos/services/inventory_service.py

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select, update

from ..errors import InsufficientStockError, ReferentialError
from ..extensions import db
from ..models import Product
from mypos.time_utils import utcnow
"""
MyPOS Inventory Invariants (authoritative)

Stock model:
- Product.stock_qty is the single mutable stock figure.
- It is changed ONLY through adjust_stock(), which is always called inside the
  caller's transactional scope (sale, purchase or return posting). This module
  never opens, commits or rolls back a transaction itself.
- Every change is a SQL-side increment (stock_qty = stock_qty + delta), never a
  Python read-modify-write, so concurrent postings cannot lose updates.

Business invariants:
- SALE decrements once per line, PURCHASE and RETURN increment once per line.
- Negative stock is allowed unless the caller asks for allow_negative=False,
  in which case the decrement is conditional and fails atomically.
- PURCHASE overwrites cost_price_cents with the line cost (last-cost-wins).
- is_low_stock = stock_qty <= min_stock_level, derived on read, never stored.
"""


def _raise_unknown_product(product_id: int) -> None:
    raise ReferentialError(f"Product {product_id} not found", details={"product_id": product_id})


def adjust_stock(
    product_id: int,
    delta: int,
    *,
    at: datetime | None = None,
    allow_negative: bool = True,
) -> None:
    """
    Apply stock_qty += delta and refresh updated_at.

    Runs in the ambient session transaction. Raises ReferentialError for an
    unknown product and InsufficientStockError when allow_negative is False
    and the decrement would take stock below zero.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(stock_qty=Product.stock_qty + delta, updated_at=at or utcnow())
        .execution_options(synchronize_session=False)
    )
    guarded = not allow_negative and delta < 0
    if guarded:
        stmt = stmt.where(Product.stock_qty + delta >= 0)

    result = db.session.execute(stmt)
    if result.rowcount:
        return

    on_hand = get_stock_level(product_id)
    if on_hand is None:
        _raise_unknown_product(product_id)

    raise InsufficientStockError(
        "Insufficient stock to post sale",
        details={
            "product_id": product_id,
            "requested_quantity": -delta,
            "on_hand": on_hand,
        },
    )


def apply_purchase_cost(product_id: int, cost_price_cents: int, *, at: datetime | None = None) -> None:
    """Last-cost-wins: overwrite the product's cost price with the latest purchase cost."""
    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(cost_price_cents=cost_price_cents, updated_at=at or utcnow())
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        _raise_unknown_product(product_id)


def get_stock_level(product_id: int) -> int | None:
    """Current stock straight from the database (bypasses the identity map)."""
    return db.session.execute(
        select(Product.stock_qty).where(Product.id == product_id)
    ).scalar_one_or_none()


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def require_products(product_ids) -> dict[int, Product]:
    """
    Load every referenced product, or fail naming the missing ids.

    Returns {product_id: Product}.
    """
    ids = sorted(set(product_ids))
    found = {
        p.id: p
        for p in db.session.query(Product).filter(Product.id.in_(ids)).all()
    }
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise ReferentialError(
            f"Unknown product id(s): {', '.join(str(pid) for pid in missing)}",
            details={"product_ids": missing},
        )
    return found


def is_low_stock(product: Product) -> bool:
    return product.stock_qty <= product.min_stock_level


def list_low_stock_products() -> list[Product]:
    """Products at or below their minimum stock level, lowest stock first."""
    return (
        db.session.query(Product)
        .filter(Product.is_low_stock)
        .order_by(Product.stock_qty.asc(), Product.name.asc())
        .all()
    )
