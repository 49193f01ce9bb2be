# Overview: Flask API routes for invoices: creation, lookup, analytics, status changes, stock retry and import.

from flask import Blueprint, current_app, jsonify, request

from ..errors import DomainError, PartialCommit, ValidationError
from ..services import invoice_report_service, invoice_service
from ..services.invoice_schemas import parse_invoice_draft
from ..services.invoice_store import SqlInvoiceStore
from ..time_utils import parse_iso_date
from ..validation import require_json_object


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _error_response(e: DomainError, action: str):
    if isinstance(e, PartialCommit):
        current_app.logger.error("%s: %s %s", action, e.message, e.details)
    return jsonify(e.to_dict()), e.http_status


@invoices_bp.post("")
def create_invoice_route():
    """
    Create a sales, pawn or buy invoice and apply its stock effect.

    Request body:
    {
        "type": "sales",                 // sales | pawn | buy
        "customer_name": "Daw Hla",      // required
        "customer_phone": "...",         // optional
        "customer_address": "...",       // optional
        "due_date": "2026-12-31",        // pawn only, required there
        "notes": "...",                  // optional
        "status": "paid",                // optional initial status
        "skip_stock_update": false,      // buy only
        "lines": [
            {"item_id": 1, "name": "Ring", "quantity": 1, "price": "150000",
             "weight_grams": 4.2, "discount": "0", "return_type": "percentage"}
        ]
    }

    Returns:
    - 201 {"invoice": Invoice}
    - 400 validation, 404 unknown item, 409 insufficient stock / bad status
    - 500 partial commit (details.invoice_id names the invoice to retry)
    """
    try:
        draft = parse_invoice_draft(request.get_json(silent=True))
        invoice = invoice_service.create_invoice(draft)
        return jsonify({"invoice": invoice.to_dict()}), 201
    except DomainError as e:
        return _error_response(e, "Invoice creation")
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


def _date_arg(name: str):
    """Optional YYYY-MM-DD query parameter."""
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return parse_iso_date(raw)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date", details={"field": name})


@invoices_bp.get("")
def list_invoices_route():
    """
    Query parameters:
    - type: sales | pawn | buy
    - status
    - customer: customer name substring
    - created_from / created_to: YYYY-MM-DD, inclusive
    - due_from / due_to: YYYY-MM-DD, inclusive (pawn due dates)
    - limit: default 100, max 500
    """
    limit = request.args.get("limit", 100, type=int)
    limit = max(1, min(limit, 500))

    try:
        invoices = SqlInvoiceStore().list_invoices(
            invoice_type=request.args.get("type"),
            status=request.args.get("status"),
            customer_name=request.args.get("customer"),
            created_from=_date_arg("created_from"),
            created_to=_date_arg("created_to"),
            due_from=_date_arg("due_from"),
            due_to=_date_arg("due_to"),
            limit=limit,
        )
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({
        "items": [inv.to_dict(include_lines=False) for inv in invoices],
        "count": len(invoices),
    })


@invoices_bp.get("/summary")
def invoice_summary_route():
    """
    Invoice analytics.

    Query parameters:
    - start / end: YYYY-MM-DD, inclusive, on created date (optional)
    - group_by: day | month (default month)
    """
    try:
        summary = invoice_report_service.invoice_summary(
            start=_date_arg("start"),
            end=_date_arg("end"),
            group_by=request.args.get("group_by", "month"),
        )
        return jsonify({"summary": summary})
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to build invoice summary")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
def get_invoice_route(invoice_id: int):
    try:
        invoice = SqlInvoiceStore().get_by_id(invoice_id).unwrap()
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"invoice": invoice.to_dict()})


@invoices_bp.get("/by-number/<string:invoice_number>")
def get_invoice_by_number_route(invoice_number: str):
    try:
        invoice = SqlInvoiceStore().get_by_number(invoice_number).unwrap()
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"invoice": invoice.to_dict()})


@invoices_bp.post("/<int:invoice_id>/status")
def change_status_route(invoice_id: int):
    """
    Request body: {"status": "redeemed"}

    Returns 409 when the change is not allowed for the invoice's type and
    current status (including asking for the current status again).
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        status = data.get("status")
        if not status:
            raise ValidationError("status required")
        invoice = invoice_service.change_status(invoice_id, status)
        return jsonify({"invoice": invoice.to_dict()})
    except DomainError as e:
        return _error_response(e, "Status change")
    except Exception:
        current_app.logger.exception("Failed to change invoice status")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/<int:invoice_id>/apply-stock")
def apply_stock_route(invoice_id: int):
    """Retry the stock effect of an invoice still flagged stock_applied=false. Idempotent."""
    try:
        invoice = invoice_service.apply_pending_stock(invoice_id)
        return jsonify({"invoice": invoice.to_dict()})
    except DomainError as e:
        return _error_response(e, "Stock retry")
    except Exception:
        current_app.logger.exception("Failed to apply pending stock")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.post("/import")
def import_invoice_route():
    """
    Build a new draft from an existing invoice. Nothing is written.

    Request body: {"source_number": "INV-2026-000001", "target_type": "sales"}

    Returns:
    - 200 {"draft": InvoiceDraft}
    - 404 unknown source, 409 import refused
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        source_number = data.get("source_number")
        if not source_number:
            raise ValidationError("source_number required")
        draft = invoice_service.import_from_invoice(source_number, data.get("target_type"))
        return jsonify({"draft": draft.to_dict()})
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to import invoice")
        return jsonify({"error": "Internal server error"}), 500
