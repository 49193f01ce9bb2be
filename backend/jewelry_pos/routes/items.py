# Overview: Flask API routes for catalog items; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..errors import DomainError
from ..services import catalog_service
from ..validation import reject_unknown_fields, require_json_object


items_bp = Blueprint("items", __name__, url_prefix="/api/items")

ITEM_FIELDS = {"name", "category", "weight_grams", "stock", "materials", "description", "image"}


def _materials_arg() -> list[str]:
    """?materials=a,b or repeated ?materials=a&materials=b"""
    values = []
    for raw in request.args.getlist("materials"):
        values.extend(part for part in raw.split(",") if part.strip())
    return values


@items_bp.post("")
def create_item_route():
    """
    Create a catalog item.

    Request body:
    {
        "name": "Bangle",          // required
        "category": "bracelet",    // required
        "weight_grams": 12.5,      // required, > 0
        "stock": 3,                // optional, default 0
        "materials": ["22K Gold"], // optional
        "description": "...",      // optional
        "image": "https://..."     // optional
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        reject_unknown_fields(data, ITEM_FIELDS)
        item = catalog_service.create_item(
            name=data.get("name"),
            category=data.get("category"),
            weight_grams=data.get("weight_grams"),
            stock=data.get("stock", 0),
            materials=data.get("materials"),
            description=data.get("description"),
            image=data.get("image"),
        )
        return jsonify({"item": item.to_dict()}), 201
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to create item")
        return jsonify({"error": "Internal server error"}), 500


@items_bp.get("")
def list_items_route():
    """
    Search the catalog for the invoice item picker.

    Query parameters:
    - q: name substring or item id
    - category: exact category ("all" = any)
    - materials: comma separated; any-of match
    - stock_status: all | low-stock (1-5 on hand) | out-of-stock
    - limit: default 50, max 200
    - page: int (optional) - page number (1-indexed). When given, the
      response carries pagination metadata and whole-catalog stock stats.
    - per_page: int (optional) - items per page (default 10, max 100)
    """
    filters = {
        "term": request.args.get("q"),
        "category": request.args.get("category"),
        "materials": _materials_arg(),
        "stock_status": request.args.get("stock_status"),
    }
    page = request.args.get("page", type=int)

    try:
        if page is not None:
            return jsonify(catalog_service.list_items(
                page=page, per_page=request.args.get("per_page", type=int), **filters,
            ))

        limit = request.args.get("limit", catalog_service.SEARCH_LIMIT, type=int)
        limit = max(1, min(limit, 200))
        items = catalog_service.search_items(limit=limit, **filters)
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)})


@items_bp.get("/<int:item_id>")
def get_item_route(item_id: int):
    try:
        item = catalog_service.get_item(item_id)
    except DomainError as e:
        return jsonify(e.to_dict()), e.http_status
    return jsonify({"item": item.to_dict()})
