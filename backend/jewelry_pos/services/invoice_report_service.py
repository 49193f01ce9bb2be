# Overview: Invoice analytics: per-type totals, pawn status breakdown and daily / monthly series.

from __future__ import annotations

from datetime import date
from decimal import Decimal

from ..errors import ValidationError
from ..extensions import db
from ..models import Invoice
from ..time_utils import day_bounds
from .invoice_lifecycle_service import TRANSITIONS
from .invoice_schemas import INVOICE_TYPE_PAWN, VALID_INVOICE_TYPES, ZERO


PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
}


def _bucket() -> dict:
    return {"count": 0, "total": ZERO}


def _render(bucket: dict) -> dict:
    return {"count": bucket["count"], "total": str(bucket["total"])}


def invoice_summary(
    *,
    start: date | None = None,
    end: date | None = None,
    group_by: str = "month",
) -> dict:
    """
    Totals over invoices created in [start, end] (whole days, inclusive).

    Returns:
        by_type: {sales|pawn|buy: {count, total}}
        pawn_by_status: {status: {count, total}} for every pawn status
        series: one row per period with count and total per type, oldest first

    Totals are summed as Decimal here rather than in SQL so SQLite's float
    SUM never touches money.
    """
    if group_by not in PERIOD_FORMATS:
        raise ValidationError(f"group_by must be one of: {', '.join(PERIOD_FORMATS)}")
    if start is not None and end is not None and start > end:
        raise ValidationError("start must be on or before end")

    q = db.session.query(Invoice.type, Invoice.status, Invoice.total, Invoice.created_at)
    lower, upper = day_bounds(start, end)
    if lower is not None:
        q = q.filter(Invoice.created_at >= lower)
    if upper is not None:
        q = q.filter(Invoice.created_at < upper)

    by_type = {t: _bucket() for t in VALID_INVOICE_TYPES}
    pawn_by_status = {s: _bucket() for s in TRANSITIONS[INVOICE_TYPE_PAWN]}
    series: dict[str, dict] = {}
    fmt = PERIOD_FORMATS[group_by]

    for invoice_type, status, total, created_at in q.all():
        amount = Decimal(total or 0)

        bucket = by_type[invoice_type]
        bucket["count"] += 1
        bucket["total"] += amount

        if invoice_type == INVOICE_TYPE_PAWN:
            pawn = pawn_by_status[status]
            pawn["count"] += 1
            pawn["total"] += amount

        period = created_at.strftime(fmt)
        row = series.setdefault(period, {t: _bucket() for t in VALID_INVOICE_TYPES})
        row[invoice_type]["count"] += 1
        row[invoice_type]["total"] += amount

    return {
        "start": start.isoformat() if start else None,
        "end": end.isoformat() if end else None,
        "group_by": group_by,
        "by_type": {t: _render(b) for t, b in by_type.items()},
        "pawn_by_status": {s: _render(b) for s, b in pawn_by_status.items()},
        "series": [
            {"period": period, **{t: _render(b) for t, b in series[period].items()}}
            for period in sorted(series)
        ],
    }
