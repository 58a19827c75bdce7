# Overview: Service-layer operations for customers; counterparty balances and credit checks.

from __future__ import annotations

from sqlalchemy import update

from ..errors import ReferentialError, ValidationError
from ..extensions import db
from ..models import Customer
from ..models.customers import WALK_IN_CUSTOMER_ID, WALK_IN_CUSTOMER_NAME
from ..models.sales import PAYMENT_TYPE_CREDIT
from .concurrency import lock_for_update


def ensure_walk_in_customer() -> Customer:
    """
    Ensure the reserved walk-in customer (id 1) exists.

    Safe to call repeatedly (idempotent). Flushes, does not commit.
    """
    customer = db.session.get(Customer, WALK_IN_CUSTOMER_ID)
    if customer:
        return customer

    customer = Customer(
        id=WALK_IN_CUSTOMER_ID,
        name=WALK_IN_CUSTOMER_NAME,
        is_credit_customer=False,
        is_active=True,
    )
    db.session.add(customer)
    db.session.flush()
    return customer


def get_customer(customer_id: int) -> Customer | None:
    return db.session.get(Customer, customer_id)


def require_active_customer(customer_id: int, *, lock: bool = False) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id)
    if lock:
        query = lock_for_update(query)
    customer = query.first()
    if customer is None:
        raise ReferentialError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    if not customer.is_active:
        raise ReferentialError(f"Customer {customer_id} is inactive", details={"customer_id": customer_id})
    return customer


def credit_warnings(customer: Customer | None, total_cents: int, payment_type: str) -> list[str]:
    """
    Advisory credit checks for the checkout screen.

    The credit limit is not a hard invariant: stores must be able to
    override it, so these are warnings and never block a sale.
    """
    if payment_type != PAYMENT_TYPE_CREDIT:
        return []
    if customer is None or customer.is_walk_in:
        return ["Credit sale has no named customer; no credit balance will be recorded"]

    warnings = []
    if not customer.is_credit_customer:
        warnings.append(f"{customer.name} is not flagged as a credit customer")
    projected = (customer.current_credit_cents or 0) + total_cents
    if projected > (customer.credit_limit_cents or 0):
        warnings.append(
            f"Credit limit exceeded for {customer.name}: "
            f"projected {projected} > limit {customer.credit_limit_cents} (cents)"
        )
    return warnings


def apply_sale_to_balances(customer_id: int | None, total_cents: int, payment_type: str) -> None:
    """
    Post a sale's effect on the customer's running totals.

    Called only from sale posting, inside its transactional scope.
    Sales without a named customer (none, or the walk-in) carry no balances.
    """
    if customer_id is None or customer_id == WALK_IN_CUSTOMER_ID:
        return

    values = {"total_purchases_cents": Customer.total_purchases_cents + total_cents}
    if payment_type == PAYMENT_TYPE_CREDIT:
        values["current_credit_cents"] = Customer.current_credit_cents + total_cents

    result = db.session.execute(
        update(Customer)
        .where(Customer.id == customer_id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if not result.rowcount:
        raise ReferentialError(f"Customer {customer_id} not found", details={"customer_id": customer_id})


def deactivate_customer(customer_id: int) -> Customer:
    """Soft-delete a customer. The walk-in customer cannot be deactivated."""
    if customer_id == WALK_IN_CUSTOMER_ID:
        raise ValidationError("The walk-in customer cannot be deactivated")

    customer = get_customer(customer_id)
    if customer is None:
        raise ReferentialError(f"Customer {customer_id} not found", details={"customer_id": customer_id})

    customer.is_active = False
    db.session.commit()
    return customer
