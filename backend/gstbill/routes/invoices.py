# Overview: Flask API routes for sales invoices; parses input and returns JSON responses.

"""Invoice API routes with permission enforcement"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..models import DocumentClass
from ..services import document_service, invoice_service, pricing_service, settings_service
from ..time_utils import today
from ..validation import parse_date_param, parse_int


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _detail(invoice) -> dict:
    data = invoice.to_dict()
    data.update(pricing_service.document_summary(invoice))
    return data


@invoices_bp.get("/")
@require_auth
@require_permission("VIEW_INVOICES")
def list_invoices_route():
    customer_id = request.args.get("customer_id")
    invoices = invoice_service.list_invoices(
        status=request.args.get("status") or None,
        from_date=parse_date_param(request.args.get("from"), "from"),
        to_date=parse_date_param(request.args.get("to"), "to"),
        customer_id=parse_int(customer_id, "customer_id") if customer_id else None,
        limit=parse_int(request.args.get("limit", "100"), "limit", minimum=1),
        offset=parse_int(request.args.get("offset", "0"), "offset", minimum=0),
    )
    return jsonify({"invoices": [i.to_dict(include_lines=False) for i in invoices]}), 200


@invoices_bp.post("/")
@require_auth
@require_permission("CREATE_INVOICE")
def create_invoice_route():
    """
    Save a new invoice.

    Body: customer fields, "lines", and "status" ("draft" or "completed").
    Completing checks stock for every line first; shortages come back as 409
    with details.items listing each short item.
    """
    data = request.get_json(silent=True) or {}
    invoice = invoice_service.save_invoice(g.actor, data, data.get("status"))
    return jsonify({"invoice": _detail(invoice)}), 201


@invoices_bp.get("/next-number")
@require_auth
@require_permission("VIEW_INVOICES")
def next_invoice_number_route():
    document_date = parse_date_param(request.args.get("date"), "date") or today()
    fiscal_year = document_service.fiscal_year_label(document_date)
    number = document_service.peek_next_number(
        DocumentClass.INVOICE,
        fiscal_year,
        prefix=settings_service.get_setting("invoice.prefix"),
    )
    return jsonify({"fiscal_year": fiscal_year, "next_number": number}), 200


@invoices_bp.get("/<int:invoice_id>")
@require_auth
@require_permission("VIEW_INVOICES")
def get_invoice_route(invoice_id: int):
    return jsonify({"invoice": _detail(invoice_service.get_invoice(invoice_id))}), 200


@invoices_bp.put("/<int:invoice_id>")
@require_auth
@require_permission("CREATE_INVOICE")
def update_invoice_route(invoice_id: int):
    """Replace a draft's header and lines; "status": "completed" also completes it."""
    data = request.get_json(silent=True) or {}
    invoice = invoice_service.save_invoice(g.actor, data, data.get("status"), invoice_id=invoice_id)
    return jsonify({"invoice": _detail(invoice)}), 200


@invoices_bp.post("/<int:invoice_id>/complete")
@require_auth
@require_permission("CREATE_INVOICE")
def complete_invoice_route(invoice_id: int):
    invoice = invoice_service.complete_invoice(g.actor, invoice_id)
    return jsonify({"invoice": _detail(invoice)}), 200


@invoices_bp.post("/<int:invoice_id>/cancel")
@require_auth
@require_permission("CANCEL_INVOICE")
def cancel_invoice_route(invoice_id: int):
    data = request.get_json(silent=True) or {}
    invoice = invoice_service.cancel_invoice(g.actor, invoice_id, data.get("reason"))
    return jsonify({"invoice": _detail(invoice)}), 200


@invoices_bp.post("/<int:invoice_id>/returns")
@require_auth
@require_permission("RECORD_SALES_RETURN")
def sales_return_route(invoice_id: int):
    """Body: {"lines": [{"line_id": 7, "quantity": 1}], "reason": "..."}"""
    data = request.get_json(silent=True) or {}
    invoice = invoice_service.record_sales_return(
        g.actor,
        invoice_id,
        data.get("lines"),
        data.get("reason"),
    )
    return jsonify({"invoice": _detail(invoice)}), 200
