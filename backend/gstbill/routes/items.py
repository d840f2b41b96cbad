# Overview: Flask API routes for items, stock ledger and manual stock operations.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..services import item_service, stock_service
from ..validation import parse_bool_param, parse_int


items_bp = Blueprint("items", __name__, url_prefix="/api/items")


@items_bp.get("/")
@require_auth
@require_permission("VIEW_INVENTORY")
def list_items_route():
    items = item_service.list_items(
        search=request.args.get("search"),
        include_inactive=parse_bool_param(request.args.get("include_inactive")),
        low_stock_only=parse_bool_param(request.args.get("low_stock")),
    )
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@items_bp.post("/")
@require_auth
@require_permission("MANAGE_INVENTORY")
def create_item_route():
    item = item_service.create_item(g.actor, request.get_json(silent=True) or {})
    return jsonify({"item": item.to_dict()}), 201


@items_bp.get("/<int:item_id>")
@require_auth
@require_permission("VIEW_INVENTORY")
def get_item_route(item_id: int):
    return jsonify({"item": item_service.get_item(item_id).to_dict()}), 200


@items_bp.patch("/<int:item_id>")
@require_auth
@require_permission("MANAGE_INVENTORY")
def update_item_route(item_id: int):
    item = item_service.update_item(g.actor, item_id, request.get_json(silent=True) or {})
    return jsonify({"item": item.to_dict()}), 200


@items_bp.get("/<int:item_id>/ledger")
@require_auth
@require_permission("VIEW_INVENTORY")
def item_ledger_route(item_id: int):
    item = item_service.get_item(item_id)
    limit = request.args.get("limit")
    entries = stock_service.get_ledger(
        item.id,
        limit=parse_int(limit, "limit", minimum=1) if limit else None,
    )
    return jsonify({
        "item": item.to_dict(),
        "entries": [e.to_dict() for e in entries],
    }), 200


@items_bp.post("/<int:item_id>/opening")
@require_auth
@require_permission("MANAGE_INVENTORY")
def opening_stock_route(item_id: int):
    data = request.get_json(silent=True) or {}
    item = item_service.set_opening_stock(g.actor, item_id, data.get("quantity"))
    return jsonify({"item": item.to_dict()}), 201


@items_bp.post("/<int:item_id>/adjust")
@require_auth
@require_permission("MANAGE_INVENTORY")
def adjust_stock_route(item_id: int):
    """
    Manual stock correction.

    Body: {"quantity_delta": -2, "reason": "damaged"}
    """
    data = request.get_json(silent=True) or {}
    item = item_service.adjust_stock(
        g.actor,
        item_id,
        data.get("quantity_delta"),
        data.get("reason"),
    )
    return jsonify({"item": item.to_dict()}), 200


@items_bp.post("/availability")
@require_auth
@require_permission("VIEW_INVENTORY")
def availability_route():
    """
    Dry-run stock check for a prospective sale.

    Body: {"lines": [{"item_id": 1, "quantity": 3}, ...]}
    Returns every shortage; changes nothing.
    """
    data = request.get_json(silent=True) or {}
    lines = data.get("lines") or []
    movements = [
        stock_service.StockMovement(
            item_id=parse_int(line.get("item_id"), "item_id", minimum=1),
            quantity=parse_int(line.get("quantity"), "quantity", minimum=1),
        )
        for line in lines
        if isinstance(line, dict)
    ]
    shortages = stock_service.validate_availability(movements)
    return jsonify({"ok": not shortages, "shortages": shortages}), 200
