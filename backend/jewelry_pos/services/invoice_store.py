# Overview: Invoice store collaborator: number allocation, persistence, lookups and status writes.

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Protocol

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import InvalidTransition, NotFound
from ..extensions import db
from ..models import Invoice, InvoiceLine, InvoiceSequence
from ..results import Result
from ..time_utils import day_bounds, utcnow
from .concurrency import run_with_retry
from .invoice_lifecycle_service import STATUS_ACTIVE, validate_transition
from .invoice_schemas import INVOICE_TYPE_PAWN, InvoiceDraft
from .invoice_totals_service import InvoiceTotals


class InvoiceSequenceError(Exception):
    """Raised when invoice number allocation keeps colliding."""
    pass


@dataclass(frozen=True)
class NewInvoice:
    """A validated, priced draft ready to be written."""
    draft: InvoiceDraft
    totals: InvoiceTotals
    line_totals: tuple
    status: str
    stock_applied: bool


class InvoiceStore(Protocol):
    def create(self, record: NewInvoice) -> Result[Invoice]:
        ...

    def get_by_id(self, invoice_id: int) -> Result[Invoice]:
        ...

    def get_by_number(self, invoice_number: str) -> Result[Invoice]:
        ...

    def update_status(self, invoice_id: int, new_status: str) -> Result[Invoice]:
        ...

    def mark_stock_applied(self, invoice_id: int) -> Result[Invoice]:
        ...

    def claim_stock_application(self, invoice_id: int) -> bool:
        ...

    def release_stock_claim(self, invoice_id: int) -> None:
        ...

    def delete(self, invoice_id: int) -> Result[None]:
        ...


def next_invoice_number(*, year: int, prefix: str = "INV", pad: int = 6) -> str:
    """
    Allocate the next invoice number for a year inside the current transaction.

    One UPDATE bumps the counter, so concurrent callers serialize on the
    sequence row instead of reading max(invoice_number).
    """
    stmt = (
        update(InvoiceSequence)
        .where(InvoiceSequence.year == year)
        .values(next_number=InvoiceSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = (
            db.session.query(InvoiceSequence.next_number)
            .filter_by(year=year)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = InvoiceSequence(year=year, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
            next_num = 1
        except IntegrityError:
            # Another request created the row first; bump it instead
            db.session.rollback()
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise
            current = (
                db.session.query(InvoiceSequence.next_number)
                .filter_by(year=year)
                .scalar()
            )
            next_num = current - 1

    return f"{prefix}-{year}-{next_num:0{pad}d}"


class SqlInvoiceStore:
    """InvoiceStore backed by the invoices / invoice_lines tables."""

    max_number_attempts = 5

    def _build(self, record: NewInvoice, invoice_number: str) -> Invoice:
        draft = record.draft
        invoice = Invoice(
            invoice_number=invoice_number,
            customer_name=draft.customer_name,
            customer_phone=draft.customer_phone,
            customer_address=draft.customer_address,
            type=draft.invoice_type,
            status=record.status,
            due_date=draft.due_date,
            notes=draft.notes,
            subtotal=record.totals.subtotal,
            total_discount=record.totals.total_discount,
            total=record.totals.total,
            skip_stock_update=draft.skip_stock_update,
            stock_applied=record.stock_applied,
        )
        for position, (line, line_total) in enumerate(zip(draft.lines, record.line_totals)):
            invoice.lines.append(InvoiceLine(
                position=position,
                item_id=line.item_id,
                name=line.name,
                category=line.category,
                weight_grams=line.weight_grams,
                quantity=line.quantity,
                price=Decimal(line.price),
                discount=Decimal(line.discount),
                total=line_total,
                return_type=line.return_type,
            ))
        return invoice

    def create(self, record: NewInvoice) -> Result[Invoice]:
        prefix = current_app.config.get("INVOICE_NUMBER_PREFIX", "INV")
        pad = current_app.config.get("INVOICE_NUMBER_PAD", 6)

        def _op() -> Invoice:
            for _ in range(self.max_number_attempts):
                number = next_invoice_number(year=utcnow().year, prefix=prefix, pad=pad)
                invoice = self._build(record, number)
                db.session.add(invoice)
                try:
                    db.session.commit()
                    return invoice
                except IntegrityError:
                    # Number already taken (e.g. a manually inserted row).
                    # The rollback also undid the bump, so burn that number before drawing again.
                    db.session.rollback()
                    next_invoice_number(year=utcnow().year, prefix=prefix, pad=pad)
                    db.session.commit()
            raise InvoiceSequenceError("Failed to allocate a unique invoice number")

        return Result.ok(run_with_retry(_op))

    def get_by_id(self, invoice_id: int) -> Result[Invoice]:
        invoice = db.session.get(Invoice, invoice_id)
        if invoice is None:
            return Result.fail(NotFound(
                f"Invoice {invoice_id} not found", details={"invoice_id": invoice_id}
            ))
        return Result.ok(invoice)

    def get_by_number(self, invoice_number: str) -> Result[Invoice]:
        invoice = db.session.query(Invoice).filter_by(invoice_number=invoice_number).first()
        if invoice is None:
            return Result.fail(NotFound(
                f"Invoice {invoice_number} not found", details={"invoice_number": invoice_number}
            ))
        return Result.ok(invoice)

    def update_status(self, invoice_id: int, new_status: str) -> Result[Invoice]:
        """
        Validate and write a status change.

        The UPDATE is conditioned on the status that was validated, so a
        concurrent change makes this one fail instead of silently winning.
        """
        found = self.get_by_id(invoice_id)
        if not found.is_ok:
            return found
        invoice = found.value
        current = invoice.status

        try:
            validate_transition(invoice.type, current, new_status)
        except InvalidTransition as exc:
            return Result.fail(exc)

        def _op() -> int:
            result = db.session.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id, Invoice.status == current)
                .values(status=new_status)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            return result.rowcount

        if not run_with_retry(_op):
            return Result.fail(InvalidTransition(
                f"Invoice {invoice_id} status changed concurrently",
                details={"invoice_id": invoice_id, "expected": current, "to": new_status},
            ))
        db.session.refresh(invoice)
        return Result.ok(invoice)

    def mark_stock_applied(self, invoice_id: int) -> Result[Invoice]:
        found = self.get_by_id(invoice_id)
        if not found.is_ok:
            return found
        invoice = found.value
        invoice.stock_applied = True
        run_with_retry(db.session.commit)
        return Result.ok(invoice)

    def claim_stock_application(self, invoice_id: int) -> bool:
        """
        Flip stock_applied False -> True in one statement.

        Returns False when another caller already applied (or is applying)
        this invoice's stock, which keeps apply_pending_stock idempotent.
        """
        def _op() -> int:
            result = db.session.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id, Invoice.stock_applied.is_(False))
                .values(stock_applied=True)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            return result.rowcount

        return bool(run_with_retry(_op))

    def release_stock_claim(self, invoice_id: int) -> None:
        def _op() -> None:
            db.session.execute(
                update(Invoice)
                .where(Invoice.id == invoice_id)
                .values(stock_applied=False)
                .execution_options(synchronize_session=False)
            )
            db.session.commit()

        run_with_retry(_op)

    def delete(self, invoice_id: int) -> Result[None]:
        found = self.get_by_id(invoice_id)
        if not found.is_ok:
            return Result.fail(found.error)
        db.session.delete(found.value)
        run_with_retry(db.session.commit)
        return Result.ok(None)

    def list_invoices(
        self,
        *,
        invoice_type: str | None = None,
        status: str | None = None,
        customer_name: str | None = None,
        created_from: date | None = None,
        created_to: date | None = None,
        due_from: date | None = None,
        due_to: date | None = None,
        limit: int = 200,
    ) -> list[Invoice]:
        """Newest first. Date ranges are whole days, both ends inclusive."""
        q = db.session.query(Invoice)
        if invoice_type:
            q = q.filter(Invoice.type == invoice_type)
        if status:
            q = q.filter(Invoice.status == status)
        if customer_name:
            q = q.filter(Invoice.customer_name.ilike(f"%{customer_name}%"))

        for column, start, end in (
            (Invoice.created_at, created_from, created_to),
            (Invoice.due_date, due_from, due_to),
        ):
            lower, upper = day_bounds(start, end)
            if lower is not None:
                q = q.filter(column >= lower)
            if upper is not None:
                q = q.filter(column < upper)

        return q.order_by(Invoice.created_at.desc(), Invoice.id.desc()).limit(limit).all()

    def list_pending_stock(self) -> list[Invoice]:
        return (
            db.session.query(Invoice)
            .filter(Invoice.stock_applied.is_(False))
            .order_by(Invoice.id)
            .all()
        )

    def list_past_due_pawns(self, as_of) -> list[Invoice]:
        """Active pawn invoices whose due date is strictly before as_of."""
        return (
            db.session.query(Invoice)
            .filter(
                Invoice.type == INVOICE_TYPE_PAWN,
                Invoice.status == STATUS_ACTIVE,
                Invoice.due_date.isnot(None),
                Invoice.due_date < as_of,
            )
            .order_by(Invoice.due_date, Invoice.id)
            .all()
        )
