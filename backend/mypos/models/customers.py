from __future__ import annotations

from ..extensions import db
from mypos.time_utils import to_utc_z


# Reserved sentinel for anonymous counter sales. Immutable and non-deletable.
WALK_IN_CUSTOMER_ID = 1
WALK_IN_CUSTOMER_NAME = "Walk-in Customer"


class Customer(db.Model):
    """
    Customer master data with running balances.

    Denormalized aggregates (updated only when a sale is posted):
    - total_purchases_cents: cumulative total of completed sales
    - current_credit_cents: outstanding credit from CREDIT sales

    credit_limit_cents is advisory. The ledger warns when a credit sale
    would exceed it but never rejects the sale.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_phone", "phone"),
        db.Index("ix_customers_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.Text, nullable=True)

    total_purchases_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    current_credit_cents = db.Column(db.Integer, nullable=False, default=0)
    is_credit_customer = db.Column(db.Boolean, nullable=False, default=False)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_walk_in(self) -> bool:
        return self.id == WALK_IN_CUSTOMER_ID

    @property
    def available_credit_cents(self) -> int:
        return (self.credit_limit_cents or 0) - (self.current_credit_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "total_purchases_cents": self.total_purchases_cents,
            "credit_limit_cents": self.credit_limit_cents,
            "current_credit_cents": self.current_credit_cents,
            "available_credit_cents": self.available_credit_cents,
            "is_credit_customer": self.is_credit_customer,
            "is_active": self.is_active,
            "is_walk_in": self.is_walk_in,
            "created_at": to_utc_z(self.created_at),
        }
