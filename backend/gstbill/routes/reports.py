# Overview: Flask API routes for GST and stock reports.

from flask import Blueprint, Response, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..services import permission_service, report_service, stock_service
from ..validation import parse_bool_param, parse_date_param


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _period():
    return (
        parse_date_param(request.args.get("from"), "from"),
        parse_date_param(request.args.get("to"), "to"),
    )


@reports_bp.get("/hsn-summary")
@require_auth
@require_permission("VIEW_REPORTS")
def hsn_summary_route():
    """
    HSN-wise summary of completed documents.

    Query: type=invoice|purchase, from, to (YYYY-MM-DD), format=json|csv
    """
    from_date, to_date = _period()
    document_type = request.args.get("type", "invoice")
    rows = report_service.hsn_summary_for_period(document_type, from_date=from_date, to_date=to_date)

    if request.args.get("format") == "csv":
        permission_service.require_permission(g.actor, "EXPORT_DATA")
        return Response(
            report_service.hsn_summary_csv(rows),
            mimetype="text/csv",
            headers={"Content-Disposition": f"attachment; filename=hsn-summary-{document_type}.csv"},
        )
    return jsonify({"type": document_type, "rows": [r.to_dict() for r in rows]}), 200


@reports_bp.get("/tax-summary")
@require_auth
@require_permission("VIEW_REPORTS")
def tax_summary_route():
    from_date, to_date = _period()
    return jsonify({
        "output": report_service.tax_totals_for_period("invoice", from_date=from_date, to_date=to_date),
        "input": report_service.tax_totals_for_period("purchase", from_date=from_date, to_date=to_date),
    }), 200


@reports_bp.get("/stock-value")
@require_auth
@require_permission("VIEW_REPORTS")
def stock_value_route():
    include_inactive = parse_bool_param(request.args.get("include_inactive"))
    return jsonify(report_service.stock_valuation(include_inactive=include_inactive)), 200


@reports_bp.get("/profit")
@require_auth
@require_permission("VIEW_REPORTS")
def profit_route():
    """Gross profit on completed invoices. Query: from, to (YYYY-MM-DD)"""
    from_date, to_date = _period()
    return jsonify(report_service.profit_for_period(from_date, to_date)), 200


@reports_bp.get("/low-stock")
@require_auth
@require_permission("VIEW_INVENTORY")
def low_stock_route():
    items = stock_service.low_stock_items()
    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@reports_bp.get("/ledger-check")
@require_auth
@require_permission("VIEW_REPORTS")
def ledger_check_route():
    return jsonify(report_service.ledger_integrity_report()), 200
