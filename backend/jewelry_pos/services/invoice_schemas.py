# Overview: Typed invoice drafts; one line variant per invoice type, parsed from JSON payloads.

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional, Union

from ..errors import ValidationError
from ..time_utils import coerce_datetime
from ..validation import (
    coerce_decimal,
    coerce_float,
    coerce_int,
    optional_str,
    reject_unknown_fields,
    require_json_object,
)


INVOICE_TYPE_SALES = "sales"
INVOICE_TYPE_PAWN = "pawn"
INVOICE_TYPE_BUY = "buy"
VALID_INVOICE_TYPES = (INVOICE_TYPE_SALES, INVOICE_TYPE_PAWN, INVOICE_TYPE_BUY)

RETURN_TYPE_MAKING_CHARGES = "making-charges"
RETURN_TYPE_PERCENTAGE = "percentage"
VALID_RETURN_TYPES = (RETURN_TYPE_MAKING_CHARGES, RETURN_TYPE_PERCENTAGE)

ZERO = Decimal("0.00")


@dataclass(frozen=True)
class SalesLine:
    """A catalog piece sold to the customer. Only sales lines carry a discount."""
    name: str
    quantity: int
    price: Decimal
    weight_grams: Optional[float]
    discount: Decimal = ZERO
    item_id: Optional[int] = None
    category: Optional[str] = None
    return_type: str = RETURN_TYPE_PERCENTAGE


@dataclass(frozen=True)
class ManualLine:
    """A pawned or bought good, typed in by staff; may point at a catalog item."""
    name: str
    quantity: int
    price: Decimal
    weight_grams: Optional[float]
    item_id: Optional[int] = None

    @property
    def discount(self) -> Decimal:
        return ZERO

    @property
    def category(self) -> None:
        return None

    @property
    def return_type(self) -> None:
        return None


InvoiceLineInput = Union[SalesLine, ManualLine]


@dataclass(frozen=True)
class InvoiceDraft:
    """
    Everything needed to create one invoice.

    Lines are an immutable tuple; editing a draft returns a new draft.
    """
    invoice_type: str
    customer_name: str
    lines: tuple = field(default_factory=tuple)
    customer_phone: Optional[str] = None
    customer_address: Optional[str] = None
    due_date: Optional[datetime] = None
    notes: Optional[str] = None
    skip_stock_update: bool = False
    status: Optional[str] = None

    def with_line(self, line: InvoiceLineInput) -> "InvoiceDraft":
        return replace(self, lines=self.lines + (line,))

    def replace_line(self, index: int, line: InvoiceLineInput) -> "InvoiceDraft":
        lines = list(self.lines)
        lines[index] = line
        return replace(self, lines=tuple(lines))

    def without_line(self, index: int) -> "InvoiceDraft":
        return replace(self, lines=self.lines[:index] + self.lines[index + 1:])

    def to_dict(self) -> dict:
        return {
            "type": self.invoice_type,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "customer_address": self.customer_address,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "notes": self.notes,
            "skip_stock_update": self.skip_stock_update,
            "lines": [line_to_dict(line) for line in self.lines],
        }


def line_to_dict(line: InvoiceLineInput) -> dict:
    return {
        "item_id": line.item_id,
        "name": line.name,
        "category": line.category,
        "weight_grams": line.weight_grams,
        "quantity": line.quantity,
        "price": str(line.price),
        "discount": str(line.discount),
        "return_type": line.return_type,
    }


def validate_invoice_type(value: Any) -> str:
    if value not in VALID_INVOICE_TYPES:
        raise ValidationError(
            f"Invalid invoice type '{value}'. Must be one of: {', '.join(VALID_INVOICE_TYPES)}"
        )
    return value


# =============================================================================
# PAYLOAD PARSING
# =============================================================================

LINE_FIELDS = {
    "item_id", "name", "category", "weight_grams", "quantity",
    "price", "discount", "return_type",
}

INVOICE_FIELDS = {
    "type", "customer_name", "customer_phone", "customer_address",
    "due_date", "notes", "skip_stock_update", "status", "lines",
}


def _parse_weight(raw: dict) -> Optional[float]:
    value = raw.get("weight_grams")
    if value is None or value == "":
        return None
    return coerce_float(value, "weight_grams")


def _parse_item_id(raw: dict) -> Optional[int]:
    value = raw.get("item_id")
    if value is None or value == "":
        return None
    return coerce_int(value, "item_id")


def parse_line(invoice_type: str, raw: Any, position: int) -> InvoiceLineInput:
    """Coerce one JSON line into the variant for the invoice type. Business rules come later."""
    if not isinstance(raw, dict):
        raise ValidationError(f"lines[{position}] must be an object")
    reject_unknown_fields(raw, LINE_FIELDS)

    name = optional_str(raw.get("name"), max_length=255, field="name") or ""
    quantity = coerce_int(raw.get("quantity"), f"lines[{position}].quantity")
    price = coerce_decimal(raw.get("price"), f"lines[{position}].price", default=ZERO)
    weight = _parse_weight(raw)
    item_id = _parse_item_id(raw)

    if invoice_type == INVOICE_TYPE_SALES:
        return_type = raw.get("return_type") or RETURN_TYPE_PERCENTAGE
        if return_type not in VALID_RETURN_TYPES:
            raise ValidationError(
                f"lines[{position}].return_type must be one of: {', '.join(VALID_RETURN_TYPES)}"
            )
        return SalesLine(
            name=name,
            quantity=quantity,
            price=price,
            weight_grams=weight,
            discount=coerce_decimal(raw.get("discount"), f"lines[{position}].discount", default=ZERO),
            item_id=item_id,
            category=optional_str(raw.get("category"), max_length=64, field="category"),
            return_type=return_type,
        )

    # Only sales lines take a discount or return type. Zero / null are
    # accepted so a serialized draft can be posted back unchanged.
    discount = coerce_decimal(raw.get("discount"), f"lines[{position}].discount", default=ZERO)
    if discount != ZERO:
        raise ValidationError(
            f"lines[{position}].discount is only valid on sales invoices",
            details={"line": position, "field": "discount"},
        )
    if raw.get("return_type") is not None:
        raise ValidationError(
            f"lines[{position}].return_type is only valid on sales invoices",
            details={"line": position, "field": "return_type"},
        )
    return ManualLine(
        name=name,
        quantity=quantity,
        price=price,
        weight_grams=weight,
        item_id=item_id,
    )


def parse_invoice_draft(payload: Any) -> InvoiceDraft:
    payload = require_json_object(payload)
    reject_unknown_fields(payload, INVOICE_FIELDS)

    invoice_type = validate_invoice_type(payload.get("type"))

    raw_lines = payload.get("lines") or []
    if not isinstance(raw_lines, list):
        raise ValidationError("lines must be a list")

    try:
        due_date = coerce_datetime(payload.get("due_date"))
    except ValueError:
        raise ValidationError("due_date must be an ISO-8601 date")

    skip = payload.get("skip_stock_update", False)
    if not isinstance(skip, bool):
        raise ValidationError("skip_stock_update must be a boolean")

    return InvoiceDraft(
        invoice_type=invoice_type,
        customer_name=optional_str(payload.get("customer_name"), max_length=255, field="customer_name") or "",
        lines=tuple(parse_line(invoice_type, raw, i) for i, raw in enumerate(raw_lines)),
        customer_phone=optional_str(payload.get("customer_phone"), max_length=64, field="customer_phone"),
        customer_address=optional_str(payload.get("customer_address"), max_length=512, field="customer_address"),
        due_date=due_date,
        notes=optional_str(payload.get("notes")),
        skip_stock_update=skip,
        status=optional_str(payload.get("status"), max_length=16, field="status"),
    )
