# Overview: Service-layer permission checks against the static role matrix.

"""
Permission Checking

WHY: Every mutating call into the billing core names the acting user
explicitly (no globals), and the core asks this module before it touches
anything.

DESIGN PRINCIPLES:
- Fail closed: unknown roles, inactive users and missing actors are denied
- Denials are logged (current_app.logger.warning); grants are not
- The matrix is static (permissions.roles), so no queries are needed
"""

from __future__ import annotations

from flask import current_app, has_app_context

from ..permissions import DEFAULT_ROLE_PERMISSIONS, validate_permission_code


class PermissionDeniedError(Exception):
    """Raised when user lacks required permission."""
    status_code = 403

    def __init__(self, message: str, permission_code: str | None = None):
        super().__init__(message)
        self.message = message
        self.permission_code = permission_code

    def to_dict(self) -> dict:
        return {
            "error": "Permission denied",
            "required_permission": self.permission_code,
            "message": self.message,
        }


def _user_of(actor):
    # Accept a SessionContext or a bare User
    return getattr(actor, "user", actor)


def get_role_permissions(role: str | None) -> set[str]:
    return set(DEFAULT_ROLE_PERMISSIONS.get(role or "", set()))


def get_user_permissions(actor) -> set[str]:
    user = _user_of(actor)
    if user is None or not user.is_active:
        return set()
    return get_role_permissions(user.role)


def user_has_permission(actor, permission_code: str) -> bool:
    return permission_code in get_user_permissions(actor)


def require_permission(actor, permission_code: str) -> None:
    """
    Require the actor to hold a permission, raise PermissionDeniedError if not.

    Usage:
        require_permission(actor, "CREATE_INVOICE")
    """
    if not validate_permission_code(permission_code):
        raise ValueError(f"Unknown permission code: {permission_code}")

    if user_has_permission(actor, permission_code):
        return

    user = _user_of(actor)
    if has_app_context():
        current_app.logger.warning(
            "Permission denied: user=%s role=%s permission=%s",
            getattr(user, "username", None),
            getattr(user, "role", None),
            permission_code,
        )
    raise PermissionDeniedError(f"Permission denied: {permission_code}", permission_code)
