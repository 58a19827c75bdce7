# Overview: Pure ledger arithmetic; no database access.

"""
Ledger arithmetic

Everything here is a pure function of its inputs so the business rules can
be tested without a database. All amounts are integer cents.

- line total (sale)     = quantity * price - quantity * unit discount
- sale subtotal         = Σ quantity * price
- sale discount         = Σ quantity * unit discount + order discount
- sale total            = subtotal - discount + tax
- change                = amount paid - total
- purchase total        = Σ quantity * cost + tax
- return total          = Σ quantity * price
"""

from __future__ import annotations

from collections import OrderedDict
from typing import Iterable

from ..errors import (
    EmptyCartError,
    InvalidAmountError,
    InvalidPaymentTypeError,
    InvalidQuantityError,
    MissingSnapshotError,
)
from ..models.purchases import PAYMENT_STATUS_PAID, PAYMENT_STATUS_PARTIAL, PAYMENT_STATUS_PENDING
from ..models.sales import PAYMENT_TYPES
from .ledger_schemas import PurchaseLineInput, PurchaseTotals, ReturnItemInput, SaleLineInput, SaleTotals


def normalize_payment_type(value: str | None) -> str:
    """Accept "Cash"/"cash"/"CASH"; reject anything outside the four tenders."""
    normalized = (value or "").strip().upper()
    if normalized not in PAYMENT_TYPES:
        raise InvalidPaymentTypeError(
            f"Invalid payment type {value!r}. Must be one of: {', '.join(PAYMENT_TYPES)}",
            details={"payment_type": value},
        )
    return normalized


def require_lines(lines: Iterable, noun: str = "cart") -> list:
    lines = list(lines or [])
    if not lines:
        raise EmptyCartError(f"Cannot post an empty {noun}")
    return lines


def require_positive_quantity(quantity, *, product_id: int | None = None) -> int:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError(
            "Quantity must be a positive integer",
            details={"product_id": product_id, "quantity": quantity},
        )
    return quantity


def require_non_negative(amount_cents, field_name: str) -> int:
    if isinstance(amount_cents, bool) or not isinstance(amount_cents, int) or amount_cents < 0:
        raise InvalidAmountError(
            f"{field_name} must be a non-negative amount in cents",
            details={"field": field_name, "value": amount_cents},
        )
    return amount_cents


def require_snapshot(value, field_name: str, *, product_id: int | None = None) -> str:
    """Product code/name snapshots are stored verbatim and may not be blank."""
    if not isinstance(value, str) or not value.strip():
        raise MissingSnapshotError(
            f"{field_name} is required",
            details={"product_id": product_id, "field": field_name},
        )
    return value


def sale_line_total(quantity: int, price_cents: int, discount_cents: int = 0) -> int:
    return quantity * price_cents - quantity * discount_cents


def compute_sale_totals(
    lines: list[SaleLineInput],
    *,
    order_discount_cents: int = 0,
    tax_cents: int = 0,
) -> SaleTotals:
    """
    Validate sale lines and derive header totals.

    Raises ValidationError subclasses for empty carts, non-positive quantities,
    negative amounts, unit discounts above the unit price and discounts that
    would push the total below tax.
    """
    lines = require_lines(lines)
    require_non_negative(order_discount_cents, "order_discount_cents")
    require_non_negative(tax_cents, "tax_cents")

    subtotal = 0
    line_discounts = 0
    line_totals = []
    for line in lines:
        require_snapshot(line.product_code, "product_code", product_id=line.product_id)
        require_snapshot(line.product_name, "product_name", product_id=line.product_id)
        require_positive_quantity(line.quantity, product_id=line.product_id)
        require_non_negative(line.price_cents, "price_cents")
        require_non_negative(line.discount_cents, "discount_cents")
        if line.discount_cents > line.price_cents:
            raise InvalidAmountError(
                "Unit discount cannot exceed unit price",
                details={
                    "product_id": line.product_id,
                    "price_cents": line.price_cents,
                    "discount_cents": line.discount_cents,
                },
            )
        subtotal += line.quantity * line.price_cents
        line_discounts += line.quantity * line.discount_cents
        line_totals.append(sale_line_total(line.quantity, line.price_cents, line.discount_cents))

    discount = line_discounts + order_discount_cents
    if discount > subtotal:
        raise InvalidAmountError(
            "Discount cannot exceed subtotal",
            details={"subtotal_cents": subtotal, "discount_cents": discount},
        )

    return SaleTotals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax_cents,
        total_cents=subtotal - discount + tax_cents,
        line_totals=line_totals,
    )


def compute_change(amount_paid_cents: int, total_cents: int) -> int:
    return amount_paid_cents - total_cents


def compute_purchase_totals(lines: list[PurchaseLineInput], *, tax_cents: int = 0) -> PurchaseTotals:
    lines = require_lines(lines, noun="purchase")
    require_non_negative(tax_cents, "tax_cents")

    line_totals = []
    for line in lines:
        require_snapshot(line.product_code, "product_code", product_id=line.product_id)
        require_snapshot(line.product_name, "product_name", product_id=line.product_id)
        require_positive_quantity(line.quantity, product_id=line.product_id)
        require_non_negative(line.cost_price_cents, "cost_price_cents")
        line_totals.append(line.quantity * line.cost_price_cents)

    subtotal = sum(line_totals)
    return PurchaseTotals(
        subtotal_cents=subtotal,
        tax_cents=tax_cents,
        total_cents=subtotal + tax_cents,
        line_totals=line_totals,
    )


def derive_payment_status(amount_paid_cents: int, total_cents: int) -> str:
    if amount_paid_cents >= total_cents:
        return PAYMENT_STATUS_PAID
    if amount_paid_cents > 0:
        return PAYMENT_STATUS_PARTIAL
    return PAYMENT_STATUS_PENDING


def compute_return_line_totals(items: list[ReturnItemInput]) -> list[int]:
    items = require_lines(items, noun="return")
    totals = []
    for item in items:
        require_snapshot(item.product_name, "product_name", product_id=item.product_id)
        require_positive_quantity(item.quantity, product_id=item.product_id)
        require_non_negative(item.price_cents, "price_cents")
        totals.append(item.quantity * item.price_cents)
    return totals


def quantities_by_product(lines: Iterable) -> "OrderedDict[int, int]":
    """Sum quantities per product id, keeping first-seen order."""
    totals: OrderedDict[int, int] = OrderedDict()
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return totals
