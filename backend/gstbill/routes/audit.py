# Overview: Flask API routes for reading and exporting the audit log.

from flask import Blueprint, Response, request, jsonify

from ..decorators import require_auth, require_permission
from ..services import audit_service
from ..validation import parse_date_param, parse_int


audit_bp = Blueprint("audit", __name__, url_prefix="/api/audit")


def _filters() -> dict:
    actor = request.args.get("actor_user_id")
    return {
        "action": request.args.get("action") or None,
        "entity_type": request.args.get("entity_type") or None,
        "entity_id": request.args.get("entity_id") or None,
        "actor_user_id": parse_int(actor, "actor_user_id") if actor else None,
        "from_date": parse_date_param(request.args.get("from"), "from"),
        "to_date": parse_date_param(request.args.get("to"), "to"),
    }


@audit_bp.get("/")
@require_auth
@require_permission("VIEW_AUDIT_LOG")
def list_audit_route():
    entries = audit_service.list_entries(
        **_filters(),
        limit=parse_int(request.args.get("limit", "200"), "limit", minimum=1),
        offset=parse_int(request.args.get("offset", "0"), "offset", minimum=0),
    )
    return jsonify({"entries": [e.to_dict() for e in entries]}), 200


@audit_bp.get("/export")
@require_auth
@require_permission("EXPORT_DATA")
def export_audit_route():
    entries = audit_service.list_entries(**_filters(), limit=1000)
    return Response(
        audit_service.export_csv(entries),
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=audit-log.csv"},
    )
