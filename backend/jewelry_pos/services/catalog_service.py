# Overview: Item catalog collaborator: reads items and applies signed stock deltas atomically.

"""
Item Catalog Invariants (authoritative)

- Item.stock is never negative. Every stock change is one conditional UPDATE:
      UPDATE items SET stock = stock + :delta WHERE id = :id AND stock + :delta >= 0
  so the availability check and the write cannot be split by a concurrent
  invoice. A caller never reads stock and writes it back.
- get_by_id / apply_stock_delta hand domain failures back as Result values
  (NotFound, InsufficientStock, StockUpdateFailed) instead of raising them.
  A database error rolls the session back first so compensation can run.
- Each stock change commits on its own. The invoice workflow owns
  compensation when a later step fails.
"""

from __future__ import annotations

from typing import Iterable, Protocol

from sqlalchemy import or_, update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import InsufficientStock, NotFound, StockUpdateFailed, ValidationError
from ..extensions import db
from ..models import Item
from ..results import Result
from ..validation import coerce_float, coerce_int, optional_str, require_str
from .concurrency import commit_with_retry, run_with_retry


SEARCH_LIMIT = 50
LOW_STOCK_THRESHOLD = 5
STOCK_STATUSES = ("all", "low-stock", "out-of-stock")


class ItemCatalog(Protocol):
    def get_by_id(self, item_id: int) -> Result[Item]:
        ...

    def apply_stock_delta(self, item_id: int, delta: int) -> Result[Item]:
        ...


def _not_found(item_id: int) -> NotFound:
    return NotFound(f"Item {item_id} not found", details={"item_id": item_id})


class SqlItemCatalog:
    """ItemCatalog backed by the items table."""

    def get_by_id(self, item_id: int) -> Result[Item]:
        item = db.session.get(Item, item_id)
        if item is None:
            return Result.fail(_not_found(item_id))
        return Result.ok(item)

    def apply_stock_delta(self, item_id: int, delta: int) -> Result[Item]:
        if delta == 0:
            return self.get_by_id(item_id)

        def _op() -> Result[Item]:
            stmt = (
                update(Item)
                .where(Item.id == item_id, Item.stock + delta >= 0)
                .values(stock=Item.stock + delta, version_id=Item.version_id + 1)
                .execution_options(synchronize_session=False)
            )
            result = db.session.execute(stmt)
            if not result.rowcount:
                item = db.session.get(Item, item_id)
                if item is None:
                    return Result.fail(_not_found(item_id))
                db.session.refresh(item)
                return Result.fail(InsufficientStock(
                    f"Insufficient stock for item {item_id}",
                    details={"items": [{
                        "item_id": item_id,
                        "requested_quantity": -delta,
                        "on_hand": item.stock,
                    }]},
                ))
            db.session.commit()
            item = db.session.get(Item, item_id)
            db.session.refresh(item)
            return Result.ok(item)

        try:
            return run_with_retry(_op)
        except SQLAlchemyError as exc:
            db.session.rollback()
            return Result.fail(StockUpdateFailed(
                f"Stock update for item {item_id} failed",
                details={"item_id": item_id, "delta": delta, "reason": type(exc).__name__},
            ))


# =============================================================================
# CATALOG ADMINISTRATION
# =============================================================================

def normalize_materials(materials: Iterable | None) -> list[str]:
    """Ordered set of material labels: blanks dropped, first occurrence wins."""
    if materials is None:
        return []
    if isinstance(materials, str):
        materials = [materials]
    seen: list[str] = []
    for label in materials:
        text = optional_str(label, max_length=64, field="materials")
        if text and text not in seen:
            seen.append(text)
    return seen


def create_item(
    *,
    name,
    category,
    weight_grams,
    stock=0,
    materials=None,
    description=None,
    image=None,
) -> Item:
    """Create a catalog item. Stock edits after creation go through stock deltas only."""
    weight = coerce_float(weight_grams, "weight_grams")
    if weight <= 0:
        raise ValidationError("weight_grams must be > 0")
    initial_stock = coerce_int(stock, "stock")
    if initial_stock < 0:
        raise ValidationError("stock must be >= 0")

    item = Item(
        name=require_str(name, "name", max_length=255),
        category=require_str(category, "category", max_length=64),
        weight_grams=weight,
        stock=initial_stock,
        materials=normalize_materials(materials),
        description=optional_str(description),
        image=optional_str(image, max_length=512, field="image"),
    )
    db.session.add(item)
    commit_with_retry()
    return item


def get_item(item_id: int) -> Item:
    return SqlItemCatalog().get_by_id(item_id).unwrap()


def _stock_status_filter(q, stock_status: str | None):
    if not stock_status or stock_status == "all":
        return q
    if stock_status == "low-stock":
        return q.filter(Item.stock > 0, Item.stock <= LOW_STOCK_THRESHOLD)
    if stock_status == "out-of-stock":
        return q.filter(Item.stock == 0)
    raise ValidationError(f"stock_status must be one of: {', '.join(STOCK_STATUSES)}")


def _filtered_items(*, term, category, materials, stock_status) -> list[Item]:
    q = db.session.query(Item)
    if category and category != "all":
        q = q.filter(Item.category == category)
    if term:
        clauses = [Item.name.ilike(f"%{term.strip()}%")]
        if term.strip().isdigit():
            clauses.append(Item.id == int(term.strip()))
        q = q.filter(or_(*clauses))
    q = _stock_status_filter(q, stock_status)

    items = q.order_by(Item.created_at.desc(), Item.id.desc()).all()

    # Materials are a JSON list, so the any-of substring match runs here
    wanted = [m.lower() for m in normalize_materials(materials)]
    if wanted:
        items = [
            item for item in items
            if any(w in label.lower() for w in wanted for label in (item.materials or []))
        ]
    return items


def search_items(
    *,
    term: str | None = None,
    category: str | None = None,
    materials: list[str] | None = None,
    stock_status: str | None = None,
    limit: int = SEARCH_LIMIT,
) -> list[Item]:
    """
    Catalog search for the invoice item picker.

    - term: case-insensitive match on name, or exact id when numeric
    - category: exact match; "all" or empty means no filter
    - materials: item matches when any wanted label is a case-insensitive
      substring of any of its materials
    - stock_status: "low-stock" (1 to 5 on hand), "out-of-stock" (0) or "all"
    Newest first.
    """
    items = _filtered_items(
        term=term, category=category, materials=materials, stock_status=stock_status,
    )
    return items[:limit]


def stock_counts() -> dict:
    """Whole-catalog counts for the inventory overview, independent of filters."""
    return {
        "total": db.session.query(Item).count(),
        "low_stock": _stock_status_filter(db.session.query(Item), "low-stock").count(),
        "out_of_stock": _stock_status_filter(db.session.query(Item), "out-of-stock").count(),
    }


def list_items(
    *,
    term: str | None = None,
    category: str | None = None,
    materials: list[str] | None = None,
    stock_status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Inventory listing with the same filters as search_items, paginated.

    Args:
        page: Page number (1-indexed). Defaults to 1.
        per_page: Items per page (default 10, max 100)

    Returns:
        Dict with 'items', 'count', 'pagination' and whole-catalog 'stats'.
    """
    per_page = max(1, min(per_page or 10, 100))
    page = max(page or 1, 1)

    items = _filtered_items(
        term=term, category=category, materials=materials, stock_status=stock_status,
    )
    total = len(items)
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    page_items = items[(page - 1) * per_page:page * per_page]

    return {
        "items": [i.to_dict() for i in page_items],
        "count": len(page_items),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
        "stats": stock_counts(),
    }
