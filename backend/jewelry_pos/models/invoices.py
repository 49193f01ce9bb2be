from __future__ import annotations

from ..extensions import db
from jewelry_pos.time_utils import to_utc_z


def _money(value):
    return str(value) if value is not None else None


class Invoice(db.Model):
    """
    Invoice header for a sales, pawn or buy transaction.

    WHY immutable: line items and totals are fixed at creation. Re-issuing
    means creating a new invoice. Only status (via the lifecycle service) and
    stock_applied (via stock application) change afterwards.

    stock_applied=False marks an invoice whose stock deltas have not been
    confirmed yet; `flask invoices apply-pending` retries those.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        db.Index("ix_invoices_type_status_created", "type", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number (e.g., "INV-2026-000042")
    invoice_number = db.Column(db.String(64), nullable=False)

    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(64), nullable=True)
    customer_address = db.Column(db.String(512), nullable=True)

    # sales | pawn | buy
    type = db.Column(db.String(8), nullable=False)
    status = db.Column(db.String(16), nullable=False, index=True)

    due_date = db.Column(db.DateTime(timezone=True), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    # Amounts in currency units, two decimals
    subtotal = db.Column(db.Numeric(14, 2), nullable=False)
    total_discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 2), nullable=False)

    skip_stock_update = db.Column(db.Boolean, nullable=False, default=False)
    stock_applied = db.Column(db.Boolean, nullable=False, default=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    lines = db.relationship(
        "InvoiceLine",
        back_populates="invoice",
        order_by="InvoiceLine.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Invoice id={self.id} number={self.invoice_number!r} type={self.type} status={self.status}>"

    def to_dict(self, include_lines: bool = True) -> dict:
        data = {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "type": self.type,
            "status": self.status,
            "due_date": to_utc_z(self.due_date) if self.due_date else None,
            "notes": self.notes,
            "subtotal": _money(self.subtotal),
            "total_discount": _money(self.total_discount),
            "total": _money(self.total),
            "skip_stock_update": self.skip_stock_update,
            "stock_applied": self.stock_applied,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(db.Model):
    """One row of an invoice. item_id is null for manually entered pawn/buy goods."""
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_lines_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position = db.Column(db.Integer, nullable=False)

    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    weight_grams = db.Column(db.Numeric(10, 3), nullable=True)

    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Numeric(14, 2), nullable=False)
    discount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(14, 2), nullable=False)

    # making-charges | percentage (sales only)
    return_type = db.Column(db.String(16), nullable=True)

    invoice = db.relationship("Invoice", back_populates="lines")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "position": self.position,
            "item_id": self.item_id,
            "name": self.name,
            "category": self.category,
            "weight_grams": float(self.weight_grams) if self.weight_grams is not None else None,
            "quantity": self.quantity,
            "price": _money(self.price),
            "discount": _money(self.discount),
            "total": _money(self.total),
            "return_type": self.return_type,
        }


class InvoiceSequence(db.Model):
    """
    Per-year invoice counter.

    WHY: numbers are allocated with one atomic UPDATE on this row instead of
    reading the max invoice number, so concurrent creations never collide.
    """
    __tablename__ = "invoice_sequences"
    __table_args__ = (
        db.UniqueConstraint("year", name="uq_invoice_sequences_year"),
    )

    id = db.Column(db.Integer, primary_key=True)
    year = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
