# backend/jewelry_pos/routes/system.py
"""
System health endpoint.

Checks database connectivity with a couple of cheap counts.
"""

import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Invoice, Item
from jewelry_pos.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        item_count = db.session.query(Item).count()
        invoice_count = db.session.query(Invoice).count()
        pending_stock = db.session.query(Invoice).filter(Invoice.stock_applied.is_(False)).count()

        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "items": item_count,
                "invoices": invoice_count,
                "invoices_pending_stock": pending_stock,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database check failed

    Invoices with unapplied stock are reported as "degraded" (still 200)
    so the operator knows to run `flask invoices apply-pending`.
    """
    start_time = time.time()
    database_health = check_database_health()

    if database_health["status"] == "unhealthy":
        overall_status, http_status = "unhealthy", 503
    elif database_health["details"]["invoices_pending_stock"]:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {"database": database_health},
    }
    return response, http_status
