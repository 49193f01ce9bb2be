# Overview: Flask API route for the gold price calculator.

from flask import Blueprint, current_app, jsonify, request

from ..errors import DomainError
from ..services import market_service
from ..services.gold_price_service import DEFAULT_GRADE, SIDE_SELL, calculate_gold_price
from ..validation import coerce_float, coerce_int, reject_unknown_fields, require_json_object


pricing_bp = Blueprint("pricing", __name__, url_prefix="/api/pricing")

QUOTE_FIELDS = {"spot_price", "weight_grams", "grade", "side", "yway", "pe"}


def _deduction(data: dict, field: str) -> int:
    """yway / pe: absent, null or "" mean no deduction."""
    value = data.get(field)
    if value is None or value == "":
        return 0
    return coerce_int(value, field)


@pricing_bp.post("/gold-quote")
def gold_quote_route():
    """
    Quote a gold piece.

    Request body:
    {
        "spot_price": 3000000,  // optional; latest recorded gold rate when omitted
        "weight_grams": 16.6,   // required
        "grade": "p15",         // p15 | p14_2 | p13 .. p8
        "side": "sell",         // sell | buy
        "yway": 0,              // buy only, 0..7
        "pe": 0                 // buy only, 0..15
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        reject_unknown_fields(data, QUOTE_FIELDS)

        kwargs = {
            "weight_grams": coerce_float(data.get("weight_grams"), "weight_grams"),
            "grade": data.get("grade") or DEFAULT_GRADE,
            "side": data.get("side") or SIDE_SELL,
            "yway": _deduction(data, "yway"),
            "pe": _deduction(data, "pe"),
        }
        if data.get("spot_price") in (None, ""):
            quote = market_service.quote_from_latest_rate(**kwargs)
            source = "market_rate"
        else:
            quote = calculate_gold_price(
                spot_price=coerce_float(data.get("spot_price"), "spot_price"), **kwargs
            )
            source = "request"
        return jsonify({"quote": quote.to_dict(), "spot_source": source})
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to quote gold price")
        return jsonify({"error": "Internal server error"}), 500
