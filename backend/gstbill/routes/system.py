# Overview: Flask API routes for health, business settings and document sequence inspection.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..services import document_service, settings_service


system_bp = Blueprint("system", __name__, url_prefix="/api")


@system_bp.get("/health")
def health():
    return jsonify({"status": "ok"}), 200


@system_bp.get("/settings")
@require_auth
def get_settings_route():
    return jsonify({"settings": settings_service.get_effective_settings()}), 200


@system_bp.put("/settings")
@require_auth
@require_permission("MANAGE_SETTINGS")
def update_settings_route():
    settings = settings_service.update_settings(g.actor, request.get_json(silent=True) or {})
    return jsonify({"settings": settings}), 200


@system_bp.get("/sequences")
@require_auth
@require_permission("MANAGE_SETTINGS")
def list_sequences_route():
    return jsonify({"sequences": [s.to_dict() for s in document_service.list_sequences()]}), 200
