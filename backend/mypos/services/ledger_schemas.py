from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from mypos.time_utils import utcnow


@dataclass(frozen=True)
class LedgerContext:
    """
    Who is posting, and when.

    Passed explicitly into every ledger operation. `now` is optional and only
    pinned by callers that need a fixed business time (imports, tests).
    """
    user_id: int
    now: datetime | None = None

    def timestamp(self) -> datetime:
        return self.now or utcnow()


@dataclass(frozen=True)
class SaleLineInput:
    product_id: int
    product_code: str
    product_name: str
    quantity: int
    price_cents: int
    # Per unit
    discount_cents: int = 0


@dataclass(frozen=True)
class SaleHeader:
    payment_type: str
    amount_paid_cents: int
    customer_id: int | None = None
    # Header-level discount on top of line discounts
    order_discount_cents: int = 0
    tax_cents: int = 0
    notes: str | None = None
    # None -> reserved from the numbering service
    invoice_number: str | None = None
    date: datetime | None = None


@dataclass(frozen=True)
class PurchaseLineInput:
    product_id: int
    product_code: str
    product_name: str
    quantity: int
    cost_price_cents: int


@dataclass(frozen=True)
class PurchaseHeader:
    supplier_id: int
    amount_paid_cents: int = 0
    tax_cents: int = 0
    notes: str | None = None
    purchase_number: str | None = None
    date: datetime | None = None


@dataclass(frozen=True)
class ReturnItemInput:
    product_id: int
    product_name: str
    quantity: int
    price_cents: int


@dataclass(frozen=True)
class ReturnHeader:
    sale_id: int
    reason: str | None = None
    notes: str | None = None
    return_number: str | None = None
    return_date: datetime | None = None


@dataclass(frozen=True)
class SaleTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    line_totals: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class PurchaseTotals:
    subtotal_cents: int
    tax_cents: int
    total_cents: int
    line_totals: list[int] = field(default_factory=list)
