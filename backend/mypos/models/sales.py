from __future__ import annotations

from ..extensions import db
from mypos.time_utils import to_utc_z


PAYMENT_TYPE_CASH = "CASH"
PAYMENT_TYPE_CARD = "CARD"
PAYMENT_TYPE_MOBILE = "MOBILE"
PAYMENT_TYPE_CREDIT = "CREDIT"
PAYMENT_TYPES = (PAYMENT_TYPE_CASH, PAYMENT_TYPE_CARD, PAYMENT_TYPE_MOBILE, PAYMENT_TYPE_CREDIT)


class Sale(db.Model):
    """
    Sale document (aggregate root).

    Posted atomically with its items, the stock decrements and the customer
    balance updates. Immutable afterwards; the only correction path is a Return.

    Invariants (all amounts in cents):
    - total_cents = subtotal_cents - discount_cents + tax_cents
    - change_cents = amount_paid_cents - total_cents >= 0
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_sales_invoice_number"),
        db.CheckConstraint(
            "payment_type IN ('CASH', 'CARD', 'MOBILE', 'CREDIT')",
            name="ck_sales_payment_type",
        ),
        db.Index("ix_sales_date", "date"),
        db.Index("ix_sales_user", "user_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable document number (e.g., "INV-20260114-0001")
    invoice_number = db.Column(db.String(64), nullable=False)

    # Business time of the sale
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_type = db.Column(db.String(16), nullable=False)
    amount_paid_cents = db.Column(db.Integer, nullable=False)
    change_cents = db.Column(db.Integer, nullable=False, default=0)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    user = db.relationship("User")
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    items = db.relationship(
        "SaleItem",
        backref="sale",
        lazy=True,
        order_by="SaleItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "date": to_utc_z(self.date),
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_type": self.payment_type,
            "amount_paid_cents": self.amount_paid_cents,
            "change_cents": self.change_cents,
            "user_id": self.user_id,
            "customer_id": self.customer_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class SaleItem(db.Model):
    """
    Line item on a sale.

    product_code/product_name are a snapshot taken when the sale was posted.
    Renaming the product later must not change historical lines.
    discount_cents is per unit: total_cents = quantity * (price_cents - discount_cents).
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_sale_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_code = db.Column(db.String(64), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "product_id": self.product_id,
            "product_code": self.product_code,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }
