from __future__ import annotations

from ..extensions import db
from mypos.time_utils import to_utc_z


class Return(db.Model):
    """
    Product return document (aggregate root).

    DESIGN PRINCIPLES:
    - References the original sale by id AND by a snapshot of its invoice number,
      so the return stays readable on its own
    - Posting restores stock for each returned line; the original sale's stock
      decrement is never touched (two independent stock movements)
    - Customer balances are not changed by a return
    """
    __tablename__ = "returns"
    __table_args__ = (
        db.UniqueConstraint("return_number", name="uq_returns_return_number"),
        db.Index("ix_returns_sale", "sale_id"),
        db.Index("ix_returns_return_date", "return_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # e.g., "RET-20260114-153012"
    return_number = db.Column(db.String(64), nullable=False)

    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False)
    original_invoice_number = db.Column(db.String(64), nullable=False)

    return_date = db.Column(db.DateTime(timezone=True), nullable=False)
    total_amount_cents = db.Column(db.Integer, nullable=False)

    reason = db.Column(db.Text, nullable=True)
    processed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    sale = db.relationship("Sale", backref=db.backref("returns", lazy=True))
    processed_by = db.relationship("User")
    items = db.relationship(
        "ReturnItem",
        backref="return_doc",
        lazy=True,
        order_by="ReturnItem.id",
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "return_number": self.return_number,
            "sale_id": self.sale_id,
            "original_invoice_number": self.original_invoice_number,
            "return_date": to_utc_z(self.return_date),
            "total_amount_cents": self.total_amount_cents,
            "reason": self.reason,
            "processed_by_user_id": self.processed_by_user_id,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class ReturnItem(db.Model):
    """Individual returned line; product_name is a snapshot."""
    __tablename__ = "return_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_return_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    return_id = db.Column(db.Integer, db.ForeignKey("returns.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    product_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "return_id": self.return_id,
            "product_id": self.product_id,
            "product_name": self.product_name,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "total_cents": self.total_cents,
        }


class DocumentSequence(db.Model):
    """
    Atomic per-day document sequences.

    WHY: "count of today's sales + 1" is a read-then-format race. Reserving the
    number with a single UPDATE inside the posting transaction makes it atomic,
    and a rolled-back posting releases its number with it.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "sequence_date", name="uq_doc_sequences_type_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    sequence_date = db.Column(db.Date, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
