# Overview: Flask API routes for login, logout and operator accounts.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_permission
from ..extensions import db
from ..models import User
from ..permissions import ROLE_DISPLAY_NAMES
from ..services import auth_service, permission_service, session_service
from ..time_utils import to_utc_z
from ..validation import parse_bool_param


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """Exchange username/password for a bearer token."""
    data = request.get_json(silent=True) or {}
    username = data.get("username")
    password = data.get("password")

    if not username or not password:
        return jsonify({"error": "username and password required"}), 400

    user = auth_service.authenticate(username, password)
    if user is None:
        return jsonify({"error": "Invalid credentials"}), 401

    session, token = session_service.create_session(user)
    return jsonify({
        "token": token,
        "expires_at": to_utc_z(session.expires_at),
        "user": user.to_dict(),
    }), 200


@auth_bp.post("/logout")
@require_auth
def logout_route():
    session_service.revoke_session(g.session_token)
    return jsonify({"ok": True}), 200


@auth_bp.get("/me")
@require_auth
def me_route():
    data = g.current_user.to_dict()
    data["role_name"] = ROLE_DISPLAY_NAMES.get(g.current_user.role, g.current_user.role)
    data["permissions"] = sorted(permission_service.get_user_permissions(g.actor))
    return jsonify({"user": data}), 200


@auth_bp.get("/users")
@require_auth
@require_permission("MANAGE_USERS")
def list_users_route():
    include_inactive = parse_bool_param(request.args.get("include_inactive"))
    query = db.session.query(User)
    if not include_inactive:
        query = query.filter(User.is_active.is_(True))
    users = query.order_by(User.username.asc()).all()
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@auth_bp.post("/users")
@require_auth
@require_permission("MANAGE_USERS")
def create_user_route():
    data = request.get_json(silent=True) or {}
    user = auth_service.create_user(
        username=data.get("username"),
        password=data.get("password"),
        role=data.get("role"),
        display_name=data.get("display_name"),
    )
    return jsonify({"user": user.to_dict()}), 201


@auth_bp.post("/users/<int:user_id>/deactivate")
@require_auth
@require_permission("MANAGE_USERS")
def deactivate_user_route(user_id: int):
    if user_id == g.current_user.id:
        return jsonify({"error": "You cannot deactivate your own account"}), 400
    user = auth_service.set_user_active(user_id, False)
    session_service.revoke_all_user_sessions(user_id)
    return jsonify({"user": user.to_dict()}), 200
