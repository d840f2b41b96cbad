# Overview: Flask API routes for customers and suppliers.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_any_permission, require_permission
from ..services import party_service


parties_bp = Blueprint("parties", __name__, url_prefix="/api")


@parties_bp.get("/customers")
@require_auth
@require_any_permission("VIEW_INVOICES", "MANAGE_CUSTOMERS")
def list_customers_route():
    customers = party_service.list_parties("customer", search=request.args.get("search"))
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@parties_bp.post("/customers")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def create_customer_route():
    customer = party_service.create_party(g.actor, "customer", request.get_json(silent=True) or {})
    return jsonify({"customer": customer.to_dict()}), 201


@parties_bp.get("/customers/<int:customer_id>")
@require_auth
@require_any_permission("VIEW_INVOICES", "MANAGE_CUSTOMERS")
def get_customer_route(customer_id: int):
    return jsonify({"customer": party_service.get_party("customer", customer_id).to_dict()}), 200


@parties_bp.patch("/customers/<int:customer_id>")
@require_auth
@require_permission("MANAGE_CUSTOMERS")
def update_customer_route(customer_id: int):
    customer = party_service.update_party(g.actor, "customer", customer_id, request.get_json(silent=True) or {})
    return jsonify({"customer": customer.to_dict()}), 200


@parties_bp.get("/suppliers")
@require_auth
@require_any_permission("VIEW_PURCHASES", "MANAGE_SUPPLIERS")
def list_suppliers_route():
    suppliers = party_service.list_parties("supplier", search=request.args.get("search"))
    return jsonify({"suppliers": [s.to_dict() for s in suppliers]}), 200


@parties_bp.post("/suppliers")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def create_supplier_route():
    supplier = party_service.create_party(g.actor, "supplier", request.get_json(silent=True) or {})
    return jsonify({"supplier": supplier.to_dict()}), 201


@parties_bp.get("/suppliers/<int:supplier_id>")
@require_auth
@require_any_permission("VIEW_PURCHASES", "MANAGE_SUPPLIERS")
def get_supplier_route(supplier_id: int):
    return jsonify({"supplier": party_service.get_party("supplier", supplier_id).to_dict()}), 200


@parties_bp.patch("/suppliers/<int:supplier_id>")
@require_auth
@require_permission("MANAGE_SUPPLIERS")
def update_supplier_route(supplier_id: int):
    supplier = party_service.update_party(g.actor, "supplier", supplier_id, request.get_json(silent=True) or {})
    return jsonify({"supplier": supplier.to_dict()}), 200
