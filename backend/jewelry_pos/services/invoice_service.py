# Overview: Invoice creation workflow, stock retry, status changes and invoice import.

"""
Invoice Creation Workflow

WHY: The invoice store and the item catalog are two collaborators with no
shared transaction. Creating an invoice therefore runs as a small saga:

1. Validate the draft (customer, lines, per-type field rules, due date)
2. Price it (line totals, subtotal, discount, total)
3. Plan stock deltas and pre-check availability (nothing written yet)
4-5. Store allocates the invoice number and persists header + lines,
     flagged stock_applied=False when there are deltas
6. The invoice is claimed (stock_applied=True), then the catalog applies
   each delta with an atomic conditional update
7. If 6 fails (refused or a database error): reverse applied deltas, delete
   the invoice, re-raise the failure. If the delete fails the claim is
   released and PartialCommit names the invoice. If a reversal fails,
   PartialCommit lists the unreversed deltas and the claim stays, since
   a blind retry would apply them twice.

Invoices left stock_applied=False are retried by apply_pending_stock().
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from ..errors import DomainError, ImportRestricted, PartialCommit, ValidationError
from ..models import Invoice
from ..time_utils import utcnow
from .catalog_service import ItemCatalog, SqlItemCatalog
from .invoice_lifecycle_service import STATUS_OVERDUE, STATUS_RETURNED, initial_status, is_past_due
from .invoice_schemas import (
    INVOICE_TYPE_BUY,
    INVOICE_TYPE_PAWN,
    INVOICE_TYPE_SALES,
    InvoiceDraft,
    ManualLine,
    SalesLine,
    ZERO,
    validate_invoice_type,
)
from .invoice_store import InvoiceStore, NewInvoice, SqlInvoiceStore
from .invoice_totals_service import aggregate, line_total
from .stock_service import apply_deltas, plan_stock_deltas, validate_availability


logger = logging.getLogger(__name__)


def _collaborators(catalog: ItemCatalog | None, store: InvoiceStore | None):
    return catalog or SqlItemCatalog(), store or SqlInvoiceStore()


# =============================================================================
# VALIDATION
# =============================================================================

def _line_problems(invoice_type: str, line) -> list[str]:
    problems = []
    if line.weight_grams is None or line.weight_grams <= 0:
        problems.append("weight_grams must be > 0")
    if line.quantity is None or line.quantity <= 0:
        problems.append("quantity must be > 0")
    if line.price is None or line.price <= 0:
        problems.append("price must be > 0")
    if invoice_type != INVOICE_TYPE_SALES and not (line.name or "").strip():
        problems.append("name cannot be blank")
    if invoice_type == INVOICE_TYPE_SALES and line.discount < 0:
        problems.append("discount must be >= 0")
    return problems


def validate_draft(draft: InvoiceDraft) -> str:
    """
    Check a draft against the per-type field rules.

    Returns the invoice's initial status.

    Raises:
        ValidationError: With details["lines"] listing every bad line
        InvalidTransition: If the requested initial status is not allowed
    """
    invoice_type = validate_invoice_type(draft.invoice_type)

    if not (draft.customer_name or "").strip():
        raise ValidationError("customer_name cannot be blank")
    if not draft.lines:
        raise ValidationError("At least one line item is required")

    line_errors = []
    for position, line in enumerate(draft.lines):
        expected = SalesLine if invoice_type == INVOICE_TYPE_SALES else ManualLine
        if not isinstance(line, expected):
            line_errors.append({"line": position, "errors": [f"{invoice_type} invoices take {expected.__name__} lines"]})
            continue
        problems = _line_problems(invoice_type, line)
        if problems:
            line_errors.append({"line": position, "errors": problems})
    if line_errors:
        raise ValidationError("Fill in all line item fields", details={"lines": line_errors})

    if invoice_type == INVOICE_TYPE_PAWN and draft.due_date is None:
        raise ValidationError("Due date is required for pawn invoices")
    if invoice_type != INVOICE_TYPE_PAWN and draft.due_date is not None:
        raise ValidationError("due_date is only valid for pawn invoices")
    if invoice_type != INVOICE_TYPE_BUY and draft.skip_stock_update:
        raise ValidationError("skip_stock_update is only valid for buy invoices")

    return initial_status(invoice_type, draft.status)


def _fill_sales_lines_from_catalog(draft: InvoiceDraft, catalog: ItemCatalog) -> InvoiceDraft:
    """Sales lines picked from the catalog may omit name/category; take them from the item."""
    if draft.invoice_type != INVOICE_TYPE_SALES:
        return draft

    for position, line in enumerate(draft.lines):
        if line.name and line.category:
            continue
        if line.item_id is None:
            if not line.name:
                raise ValidationError(
                    "Fill in all line item fields",
                    details={"lines": [{"line": position, "errors": ["name cannot be blank"]}]},
                )
            continue
        item = catalog.get_by_id(line.item_id).unwrap()
        draft = draft.replace_line(position, replace(
            line,
            name=line.name or item.name,
            category=line.category or item.category,
        ))
    return draft


# =============================================================================
# CREATION
# =============================================================================

def price_draft(draft: InvoiceDraft):
    """Line totals and invoice totals for a draft."""
    line_totals = tuple(
        line_total(line.price, line.quantity, line.discount, draft.invoice_type)
        for line in draft.lines
    )
    return line_totals, aggregate(draft.lines, draft.invoice_type)


def create_invoice(
    draft: InvoiceDraft,
    *,
    catalog: ItemCatalog | None = None,
    store: InvoiceStore | None = None,
) -> Invoice:
    """
    Create one invoice and apply its stock effect.

    Raises:
        ValidationError, InvalidTransition: Bad draft, nothing written
        NotFound, InsufficientStock: Stock check failed; nothing left behind
        PartialCommit: Invoice written but its stock effect could not be
            applied or undone
    """
    catalog, store = _collaborators(catalog, store)

    status = validate_draft(draft)
    draft = _fill_sales_lines_from_catalog(draft, catalog)
    line_totals, totals = price_draft(draft)

    deltas = plan_stock_deltas(
        draft.invoice_type, draft.lines, skip_stock_update=draft.skip_stock_update
    )
    validate_availability(catalog, deltas)

    invoice = store.create(NewInvoice(
        draft=draft,
        totals=totals,
        line_totals=line_totals,
        status=status,
        stock_applied=not deltas,
    )).unwrap()
    invoice_id = invoice.id

    if not deltas:
        logger.info("Created %s invoice %s (no stock effect)", draft.invoice_type, invoice.invoice_number)
        return invoice

    # Flag first, then move stock: a crash between the two leaves the invoice
    # claimed with nothing applied, never applied but still pending.
    try:
        claimed = store.claim_stock_application(invoice_id)
    except SQLAlchemyError as exc:
        logger.exception("Could not flag invoice %s for stock application", invoice_id)
        raise PartialCommit(
            "Invoice saved but its stock was not applied; retry stock application",
            details={"invoice_id": invoice_id, "deltas": [d.to_dict() for d in deltas]},
        ) from exc
    if not claimed:
        # A concurrent apply-pending run got there first
        return store.get_by_id(invoice_id).unwrap()

    application = apply_deltas(catalog, deltas)
    if application.ok:
        invoice = store.get_by_id(invoice_id).unwrap()
        logger.info(
            "Created %s invoice %s with %d stock change(s)",
            draft.invoice_type, invoice.invoice_number, len(deltas),
        )
        return invoice

    _compensate_creation(store, invoice_id, application)
    raise application.error


def _compensate_creation(store: InvoiceStore, invoice_id: int, application) -> None:
    """
    Undo step 5 after step 6 failed. Raises PartialCommit if it cannot.

    An invoice that cannot be deleted gets its claim released so
    apply_pending_stock picks it up.
    """
    if not application.compensated:
        logger.error("Invoice %s left with unreversed stock deltas", invoice_id)
        raise PartialCommit(
            "Invoice saved with a partial stock update; manual reconciliation needed",
            details={
                "invoice_id": invoice_id,
                "cause": application.error.to_dict(),
                "unreversed": [d.to_dict() for d in application.applied],
            },
        )

    deleted = store.delete(invoice_id)
    if not deleted.is_ok:
        logger.error("Could not remove invoice %s after stock failure: %s", invoice_id, deleted.error)
        store.release_stock_claim(invoice_id)
        raise PartialCommit(
            "Invoice saved but its stock could not be applied; retry stock application",
            details={"invoice_id": invoice_id, "cause": application.error.to_dict()},
        )
    logger.warning(
        "Invoice %s rolled back: %s", invoice_id, application.error.message
    )


def apply_pending_stock(
    invoice_id: int,
    *,
    catalog: ItemCatalog | None = None,
    store: InvoiceStore | None = None,
) -> Invoice:
    """
    Apply the stock effect of an invoice still flagged stock_applied=False.

    Idempotent: an already applied invoice is returned unchanged, and the
    flag is claimed atomically so two retries cannot both apply.
    """
    catalog, store = _collaborators(catalog, store)

    invoice = store.get_by_id(invoice_id).unwrap()
    if invoice.stock_applied:
        return invoice

    deltas = plan_stock_deltas(
        invoice.type, invoice.lines, skip_stock_update=invoice.skip_stock_update
    )
    if not store.claim_stock_application(invoice_id):
        return store.get_by_id(invoice_id).unwrap()

    application = apply_deltas(catalog, deltas)
    if not application.ok:
        if application.compensated:
            store.release_stock_claim(invoice_id)
            raise application.error
        raise PartialCommit(
            "Stock retry left a partial update; manual reconciliation needed",
            details={
                "invoice_id": invoice_id,
                "cause": application.error.to_dict(),
                "unreversed": [d.to_dict() for d in application.applied],
            },
        )

    logger.info("Applied pending stock for invoice %s", invoice_id)
    return store.get_by_id(invoice_id).unwrap()


def apply_all_pending_stock(
    *,
    catalog: ItemCatalog | None = None,
    store: SqlInvoiceStore | None = None,
) -> tuple[list[Invoice], list[tuple[int, DomainError]]]:
    """Retry every pending invoice. Returns (applied, failed_with_errors)."""
    store = store or SqlInvoiceStore()
    applied, failed = [], []
    for invoice in store.list_pending_stock():
        try:
            applied.append(apply_pending_stock(invoice.id, catalog=catalog, store=store))
        except DomainError as exc:
            failed.append((invoice.id, exc))
    return applied, failed


# =============================================================================
# STATUS
# =============================================================================

def change_status(invoice_id: int, new_status: str, *, store: InvoiceStore | None = None) -> Invoice:
    """
    Raises:
        NotFound: Unknown invoice
        InvalidTransition: Status not legal for the invoice's type/current status
    """
    store = store or SqlInvoiceStore()
    return store.update_status(invoice_id, new_status).unwrap()


def mark_overdue_pawns(
    as_of: datetime | None = None,
    *,
    store: SqlInvoiceStore | None = None,
) -> list[Invoice]:
    """Move every active pawn invoice due before as_of to overdue."""
    store = store or SqlInvoiceStore()
    as_of = as_of or utcnow()

    updated = []
    for invoice in store.list_past_due_pawns(as_of):
        if not is_past_due(invoice.type, invoice.status, invoice.due_date, as_of):
            continue
        result = store.update_status(invoice.id, STATUS_OVERDUE)
        if result.is_ok:
            updated.append(result.value)
        else:
            logger.warning("Skipped overdue update for invoice %s: %s", invoice.id, result.error)
    return updated


# =============================================================================
# IMPORT
# =============================================================================

def import_from_invoice(
    source_number: str,
    target_type: str,
    *,
    store: InvoiceStore | None = None,
) -> InvoiceDraft:
    """
    Copy an existing invoice's customer and lines into a new draft.

    Prices reset to 0 so staff re-price the goods; item links, names,
    quantities and weights carry over. Read-only.

    Raises:
        NotFound: Unknown source invoice
        ImportRestricted: buy -> buy import, or source already returned
    """
    store = store or SqlInvoiceStore()
    validate_invoice_type(target_type)
    source = store.get_by_number(source_number).unwrap()

    if target_type == INVOICE_TYPE_BUY and source.type == INVOICE_TYPE_BUY:
        raise ImportRestricted(
            "A buy invoice cannot be imported into a new buy invoice",
            details={"source": source.invoice_number, "source_type": source.type},
        )
    if source.status == STATUS_RETURNED:
        raise ImportRestricted(
            "A returned invoice cannot be imported",
            details={"source": source.invoice_number, "status": source.status},
        )

    lines = []
    for line in source.lines:
        weight = float(line.weight_grams) if line.weight_grams is not None else None
        if target_type == INVOICE_TYPE_SALES:
            lines.append(SalesLine(
                name=line.name,
                quantity=line.quantity,
                price=ZERO,
                weight_grams=weight,
                item_id=line.item_id,
                category=line.category,
            ))
        else:
            lines.append(ManualLine(
                name=line.name,
                quantity=line.quantity,
                price=ZERO,
                weight_grams=weight,
                item_id=line.item_id,
            ))

    return InvoiceDraft(
        invoice_type=target_type,
        customer_name=source.customer_name,
        customer_phone=source.customer_phone,
        customer_address=source.customer_address,
        lines=tuple(lines),
    )
