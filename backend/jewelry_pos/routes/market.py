# Overview: Flask API routes for daily gold / exchange rate readings.

from flask import Blueprint, current_app, jsonify, request

from ..errors import DomainError
from ..services import market_service
from ..validation import reject_unknown_fields, require_json_object


market_bp = Blueprint("market", __name__, url_prefix="/api/market-rates")

RATE_FIELDS = {"rate_type", "rate_date", "time", "value"}


@market_bp.post("")
def record_rate_route():
    """
    Request body:
    {
        "rate_type": "gold",        // gold | exchange_rate
        "rate_date": "2026-10-19",  // optional, default today
        "time": "10:00",            // optional, default now
        "value": 3000000            // required, > 0
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        reject_unknown_fields(data, RATE_FIELDS)
        row = market_service.record_rate(
            data.get("rate_type"), data.get("rate_date"), data.get("time"), data.get("value"),
        )
        return jsonify({"rate": row.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to record market rate")
        return jsonify({"error": "Internal server error"}), 500


@market_bp.get("")
def list_rates_route():
    limit = request.args.get("limit", 30, type=int)
    limit = max(1, min(limit, 366))
    try:
        rows = market_service.list_rates(request.args.get("rate_type"), limit=limit)
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"items": [r.to_dict() for r in rows], "count": len(rows)})


@market_bp.get("/latest")
def latest_rate_route():
    try:
        reading = market_service.latest_rate(request.args.get("rate_type", market_service.RATE_TYPE_GOLD))
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"rate": reading})
