# Overview: Line and invoice total arithmetic; exact Decimal sums so line order never matters.

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from ..errors import ValidationError
from .invoice_schemas import INVOICE_TYPE_SALES, ZERO


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal: Decimal
    total_discount: Decimal
    total: Decimal

    def to_dict(self) -> dict:
        return {
            "subtotal": str(self.subtotal),
            "total_discount": str(self.total_discount),
            "total": str(self.total),
        }


def _effective_discount(discount, invoice_type: str) -> Decimal:
    if invoice_type != INVOICE_TYPE_SALES:
        return ZERO
    return Decimal(discount or 0)


def line_total(price, quantity: int, discount=ZERO, invoice_type: str = INVOICE_TYPE_SALES) -> Decimal:
    """
    price * quantity - discount.

    Discount only applies to sales; pawn and buy lines always use 0.
    A discount larger than price * quantity is rejected rather than stored
    as a negative line.
    """
    price = Decimal(price)
    discount = _effective_discount(discount, invoice_type)
    if price < 0:
        raise ValidationError("price must be >= 0")
    if quantity < 0:
        raise ValidationError("quantity must be >= 0")
    if discount < 0:
        raise ValidationError("discount must be >= 0")

    gross = price * quantity
    if discount > gross:
        raise ValidationError(
            "discount cannot exceed price * quantity",
            details={"gross": str(gross), "discount": str(discount)},
        )
    return gross - discount


def aggregate(lines: Iterable, invoice_type: str = INVOICE_TYPE_SALES) -> InvoiceTotals:
    """
    Sum lines into subtotal / total_discount / total.

    Each line needs .price, .quantity and .discount. Sums are Decimal, so
    any permutation of the same lines gives identical totals.
    """
    subtotal = ZERO
    total_discount = ZERO
    for line in lines:
        line_total(line.price, line.quantity, line.discount, invoice_type)
        subtotal += Decimal(line.price) * line.quantity
        total_discount += _effective_discount(line.discount, invoice_type)

    return InvoiceTotals(
        subtotal=subtotal,
        total_discount=total_discount,
        total=subtotal - total_discount,
    )
