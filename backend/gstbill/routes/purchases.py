# Overview: Flask API routes for purchase entries; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..models import DocumentClass
from ..services import document_service, pricing_service, purchase_service, settings_service
from ..time_utils import today
from ..validation import parse_date_param, parse_int


purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


def _detail(purchase) -> dict:
    data = purchase.to_dict()
    data.update(pricing_service.document_summary(purchase))
    return data


@purchases_bp.get("/")
@require_auth
@require_permission("VIEW_PURCHASES")
def list_purchases_route():
    supplier_id = request.args.get("supplier_id")
    purchases = purchase_service.list_purchases(
        status=request.args.get("status") or None,
        from_date=parse_date_param(request.args.get("from"), "from"),
        to_date=parse_date_param(request.args.get("to"), "to"),
        supplier_id=parse_int(supplier_id, "supplier_id") if supplier_id else None,
        limit=parse_int(request.args.get("limit", "100"), "limit", minimum=1),
        offset=parse_int(request.args.get("offset", "0"), "offset", minimum=0),
    )
    return jsonify({"purchases": [p.to_dict(include_lines=False) for p in purchases]}), 200


@purchases_bp.post("/")
@require_auth
@require_permission("CREATE_PURCHASE")
def create_purchase_route():
    data = request.get_json(silent=True) or {}
    purchase = purchase_service.save_purchase(g.actor, data, data.get("status"))
    return jsonify({"purchase": _detail(purchase)}), 201


@purchases_bp.get("/next-number")
@require_auth
@require_permission("VIEW_PURCHASES")
def next_purchase_number_route():
    document_date = parse_date_param(request.args.get("date"), "date") or today()
    fiscal_year = document_service.fiscal_year_label(document_date)
    number = document_service.peek_next_number(
        DocumentClass.PURCHASE,
        fiscal_year,
        prefix=settings_service.get_setting("purchase.prefix"),
    )
    return jsonify({"fiscal_year": fiscal_year, "next_number": number}), 200


@purchases_bp.get("/<int:purchase_id>")
@require_auth
@require_permission("VIEW_PURCHASES")
def get_purchase_route(purchase_id: int):
    return jsonify({"purchase": _detail(purchase_service.get_purchase(purchase_id))}), 200


@purchases_bp.put("/<int:purchase_id>")
@require_auth
@require_permission("CREATE_PURCHASE")
def update_purchase_route(purchase_id: int):
    data = request.get_json(silent=True) or {}
    purchase = purchase_service.save_purchase(g.actor, data, data.get("status"), purchase_id=purchase_id)
    return jsonify({"purchase": _detail(purchase)}), 200


@purchases_bp.post("/<int:purchase_id>/cancel")
@require_auth
@require_permission("CANCEL_PURCHASE")
def cancel_purchase_route(purchase_id: int):
    data = request.get_json(silent=True) or {}
    purchase = purchase_service.cancel_purchase(g.actor, purchase_id, data.get("reason"))
    return jsonify({"purchase": _detail(purchase)}), 200
