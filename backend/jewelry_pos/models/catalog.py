from __future__ import annotations

from ..extensions import db
from jewelry_pos.time_utils import to_utc_z


class Item(db.Model):
    """
    Catalog entry for one sellable piece (or a batch of identical pieces).

    STOCK DESIGN DECISION:
    Item.stock is a stored integer, not ledger-derived. It is only ever changed
    through a single conditional UPDATE (see services/catalog_service.py) so the
    check and the write cannot be split by a concurrent invoice.
    The CHECK constraint is the last line: stock can never be stored negative.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("stock >= 0", name="ck_items_stock_non_negative"),
        db.CheckConstraint("weight_grams > 0", name="ck_items_weight_positive"),
        db.Index("ix_items_category_name", "category", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(64), nullable=False, index=True)
    description = db.Column(db.Text, nullable=True)

    # Ordered, de-duplicated list of material labels ("22K Gold", "Diamond", ...)
    materials = db.Column(db.JSON, nullable=False, default=list)

    weight_grams = db.Column(db.Numeric(10, 3), nullable=False)
    stock = db.Column(db.Integer, nullable=False, default=0)
    image = db.Column(db.String(512), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "materials": list(self.materials or []),
            "weight_grams": float(self.weight_grams) if self.weight_grams is not None else None,
            "stock": self.stock,
            "image": self.image,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
