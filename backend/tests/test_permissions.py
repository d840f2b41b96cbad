"""
Role matrix and authentication service tests.

Verifies:
- Each role gets exactly the capabilities it should
- Inactive users have no permissions
- Unknown permission codes are programming errors, not denials
- Password hashing and session tokens
"""

from datetime import timedelta

import pytest

from gstbill.errors import ConflictError
from gstbill.models import SessionToken
from gstbill.permissions import DEFAULT_ROLE_PERMISSIONS, PERMISSION_DEFINITIONS, VALID_ROLES
from gstbill.services import auth_service, permission_service, session_service
from gstbill.services.auth_service import PasswordValidationError
from gstbill.services.permission_service import PermissionDeniedError
from gstbill.services.session_service import SessionContext
from gstbill.time_utils import utcnow


class TestRoleMatrix:

    def test_every_role_only_uses_defined_codes(self):
        defined = {code for code, *_ in PERMISSION_DEFINITIONS}
        for role in VALID_ROLES:
            assert DEFAULT_ROLE_PERMISSIONS[role] <= defined, role

    def test_superadmin_has_everything(self):
        defined = {code for code, *_ in PERMISSION_DEFINITIONS}
        assert permission_service.get_role_permissions("superadmin") == defined

    def test_admin_cannot_manage_users(self):
        assert "MANAGE_USERS" not in permission_service.get_role_permissions("admin")

    @pytest.mark.parametrize("role,allowed,denied", [
        ("billing_staff", "CREATE_INVOICE", "CANCEL_INVOICE"),
        ("billing_staff", "MANAGE_CUSTOMERS", "CREATE_PURCHASE"),
        ("purchase_staff", "CREATE_PURCHASE", "CREATE_INVOICE"),
        ("purchase_staff", "MANAGE_INVENTORY", "CANCEL_PURCHASE"),
        ("readonly_auditor", "VIEW_AUDIT_LOG", "CREATE_INVOICE"),
        ("readonly_auditor", "EXPORT_DATA", "MANAGE_INVENTORY"),
    ])
    def test_staff_roles(self, make_user, role, allowed, denied):
        actor = SessionContext(user=make_user(role))
        assert permission_service.user_has_permission(actor, allowed)
        assert not permission_service.user_has_permission(actor, denied)

    def test_unknown_role_gets_nothing(self):
        assert permission_service.get_role_permissions("janitor") == set()


class TestRequirePermission:

    def test_denial_names_the_permission(self, biller):
        with pytest.raises(PermissionDeniedError) as exc_info:
            permission_service.require_permission(biller, "CANCEL_INVOICE")
        assert exc_info.value.permission_code == "CANCEL_INVOICE"
        assert exc_info.value.to_dict()["error"] == "Permission denied"

    def test_inactive_user_denied(self, make_user):
        actor = SessionContext(user=make_user("admin", is_active=False))
        assert permission_service.get_user_permissions(actor) == set()
        with pytest.raises(PermissionDeniedError):
            permission_service.require_permission(actor, "VIEW_INVOICES")

    def test_unknown_code_is_an_error(self, admin):
        with pytest.raises(ValueError):
            permission_service.require_permission(admin, "LAUNCH_ROCKETS")

    def test_missing_actor_denied(self, db_session):
        with pytest.raises(PermissionDeniedError):
            permission_service.require_permission(None, "VIEW_INVOICES")


class TestAuthService:

    @pytest.mark.parametrize("password", ["short1!", "alllowercase1!", "ALLUPPERCASE1!", "NoDigits!!", "NoSymbols123"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_hash_and_verify(self, db_session):
        hashed = auth_service.hash_password("Password123!")
        assert hashed != "Password123!"
        assert auth_service.verify_password("Password123!", hashed)
        assert not auth_service.verify_password("Password123?", hashed)
        assert not auth_service.verify_password("Password123!", "not-a-bcrypt-hash")

    def test_create_user_and_authenticate(self, db_session):
        user = auth_service.create_user("cashier1", "Password123!", "billing_staff", "Front Desk")
        assert user.display_name == "Front Desk"
        assert auth_service.authenticate("cashier1", "Password123!").id == user.id
        assert auth_service.authenticate("cashier1", "wrong") is None

    def test_duplicate_username(self, db_session):
        auth_service.create_user("cashier1", "Password123!", "billing_staff")
        with pytest.raises(ConflictError):
            auth_service.create_user("cashier1", "Password123!", "admin")

    def test_inactive_user_cannot_log_in(self, db_session):
        user = auth_service.create_user("cashier1", "Password123!", "billing_staff")
        auth_service.set_user_active(user.id, False)
        assert auth_service.authenticate("cashier1", "Password123!") is None


class TestSessions:

    def test_token_round_trip(self, db_session, billing_user):
        session, token = session_service.create_session(billing_user)
        assert session.token_hash != token
        context = session_service.validate_session(token)
        assert context.user_id == billing_user.id
        assert context.role == "billing_staff"

    def test_revoked_token_rejected(self, db_session, billing_user):
        _, token = session_service.create_session(billing_user)
        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_expired_token_rejected(self, db_session, billing_user):
        session, token = session_service.create_session(billing_user)
        session.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_deactivation_ends_sessions(self, db_session, billing_user):
        _, token = session_service.create_session(billing_user)
        auth_service.set_user_active(billing_user.id, False)
        assert session_service.validate_session(token) is None

    def test_revoke_all(self, db_session, billing_user):
        session_service.create_session(billing_user)
        session_service.create_session(billing_user)
        assert session_service.revoke_all_user_sessions(billing_user.id) == 2
        assert db_session.query(SessionToken).filter_by(is_revoked=False).count() == 0
