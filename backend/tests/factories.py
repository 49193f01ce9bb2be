"""Draft/line builders shared by the service tests."""

from datetime import timedelta
from decimal import Decimal

from jewelry_pos.services.invoice_schemas import InvoiceDraft, ManualLine, SalesLine
from jewelry_pos.time_utils import utcnow


def sales_line(item, quantity=1, price="150000", discount="0"):
    return SalesLine(
        name=item.name,
        quantity=quantity,
        price=Decimal(price),
        weight_grams=float(item.weight_grams),
        discount=Decimal(discount),
        item_id=item.id,
        category=item.category,
    )


def manual_line(name="Gold chain", quantity=1, price="90000", weight_grams=8.0, item_id=None):
    return ManualLine(
        name=name,
        quantity=quantity,
        price=Decimal(price),
        weight_grams=weight_grams,
        item_id=item_id,
    )


def sales_draft(*lines, status=None):
    return InvoiceDraft(invoice_type="sales", customer_name="Daw Hla", lines=tuple(lines), status=status)


def pawn_draft(*lines, due_in_days=30):
    return InvoiceDraft(
        invoice_type="pawn",
        customer_name="U Ba",
        lines=tuple(lines),
        due_date=utcnow() + timedelta(days=due_in_days),
    )


def buy_draft(*lines, skip_stock_update=False):
    return InvoiceDraft(
        invoice_type="buy",
        customer_name="Ma Mya",
        lines=tuple(lines),
        skip_stock_update=skip_stock_update,
    )
