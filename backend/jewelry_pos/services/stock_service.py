# Overview: Translates invoice lines into catalog stock deltas and applies them all-or-nothing.

"""
Stock Reconciliation Rules

    sales: each line with an item decrements that item by its quantity
    pawn:  never touches stock (pawned goods are collateral, not sold)
    buy:   each line with an item increments that item by its quantity,
           unless the invoice sets skip_stock_update (invoice-wide)

Lines without an item reference never produce a delta.

validate_availability() is a pre-check so the user gets every short item in
one error. It is not the guard: the catalog's conditional UPDATE is, so two
invoices racing for the last unit cannot both succeed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from ..errors import DomainError, InsufficientStock, StockUpdateFailed
from ..results import Result
from .catalog_service import ItemCatalog
from .invoice_schemas import INVOICE_TYPE_BUY, INVOICE_TYPE_SALES


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockDelta:
    item_id: int
    delta: int

    def reversed(self) -> "StockDelta":
        return StockDelta(self.item_id, -self.delta)

    def to_dict(self) -> dict:
        return {"item_id": self.item_id, "delta": self.delta}


@dataclass(frozen=True)
class StockApplication:
    """Outcome of apply_deltas: what was applied, and what failed if anything."""
    applied: tuple
    error: DomainError | None = None
    rollback_failures: tuple = ()

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def compensated(self) -> bool:
        return not self.rollback_failures


def plan_stock_deltas(invoice_type: str, lines: Iterable, *, skip_stock_update: bool = False) -> tuple:
    """
    Stock deltas for an invoice, one per referenced item, in first-seen order.

    Quantities for the same item on several lines are merged so availability
    is judged on the combined request.
    """
    if invoice_type == INVOICE_TYPE_SALES:
        sign = -1
    elif invoice_type == INVOICE_TYPE_BUY and not skip_stock_update:
        sign = 1
    else:
        return ()

    merged: dict[int, int] = {}
    for line in lines:
        if line.item_id is None:
            continue
        merged[line.item_id] = merged.get(line.item_id, 0) + sign * line.quantity

    return tuple(StockDelta(item_id, delta) for item_id, delta in merged.items() if delta)


def validate_availability(catalog: ItemCatalog, deltas: Iterable[StockDelta]) -> None:
    """
    Raise InsufficientStock (listing every short item) or NotFound before
    anything is written.

    Increments only need the item to exist.
    """
    insufficient = []
    for d in deltas:
        result = catalog.get_by_id(d.item_id)
        if not result.is_ok:
            raise result.error
        item = result.value
        if d.delta < 0 and item.stock < -d.delta:
            insufficient.append({
                "item_id": d.item_id,
                "requested_quantity": -d.delta,
                "on_hand": item.stock,
            })

    if insufficient:
        raise InsufficientStock(
            "Insufficient stock to create invoice",
            details={"items": insufficient},
        )


def _apply_one(catalog: ItemCatalog, d: StockDelta) -> Result:
    """One catalog write; an exception from the catalog becomes a failed Result."""
    try:
        return catalog.apply_stock_delta(d.item_id, d.delta)
    except Exception as exc:
        logger.exception("Stock delta %s raised", d)
        return Result.fail(StockUpdateFailed(
            f"Stock update for item {d.item_id} failed",
            details={"item_id": d.item_id, "delta": d.delta, "reason": type(exc).__name__},
        ))


def _reverse(catalog: ItemCatalog, applied: list[StockDelta]) -> tuple:
    failures = []
    for d in reversed(applied):
        undo = d.reversed()
        result = _apply_one(catalog, undo)
        if not result.is_ok:
            logger.error("Could not reverse stock delta %s: %s", undo, result.error)
            failures.append(undo)
    return tuple(failures)


def apply_deltas(catalog: ItemCatalog, deltas: Iterable[StockDelta]) -> StockApplication:
    """
    Apply deltas in order. On the first failure, reverse the ones already
    applied so the catalog ends where it started.

    Never raises: domain failures and catalog exceptions (a dropped
    connection mid-way) both come back as a failed StockApplication, so
    the caller always knows which deltas are still on the books.
    """
    applied: list[StockDelta] = []
    for d in deltas:
        result = _apply_one(catalog, d)
        if not result.is_ok:
            rollback_failures = _reverse(catalog, applied)
            return StockApplication(
                applied=tuple(undo.reversed() for undo in rollback_failures),
                error=result.error,
                rollback_failures=rollback_failures,
            )
        applied.append(d)

    return StockApplication(applied=tuple(applied))
