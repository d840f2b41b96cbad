# Overview: Static role -> permission matrix.
# Roles are fixed; a user carries exactly one role name.

from .helpers import get_all_permission_codes


ROLE_DISPLAY_NAMES = {
    "superadmin": "Super Administrator",
    "admin": "Administrator",
    "billing_staff": "Billing Staff",
    "purchase_staff": "Purchase Staff",
    "readonly_auditor": "Read-Only Auditor",
}

_VIEW_ALL = {"VIEW_INVOICES", "VIEW_PURCHASES", "VIEW_INVENTORY"}

DEFAULT_ROLE_PERMISSIONS = {
    "superadmin": set(get_all_permission_codes()),
    "admin": _VIEW_ALL | {
        "CREATE_INVOICE",
        "EDIT_INVOICE",
        "CANCEL_INVOICE",
        "RECORD_SALES_RETURN",
        "CREATE_PURCHASE",
        "EDIT_PURCHASE",
        "CANCEL_PURCHASE",
        "MANAGE_INVENTORY",
        "MANAGE_CUSTOMERS",
        "MANAGE_SUPPLIERS",
        "VIEW_REPORTS",
        "EXPORT_DATA",
        "VIEW_AUDIT_LOG",
        "MANAGE_SETTINGS",
    },
    "billing_staff": _VIEW_ALL | {
        "CREATE_INVOICE",
        "MANAGE_CUSTOMERS",
    },
    "purchase_staff": _VIEW_ALL | {
        "CREATE_PURCHASE",
        "MANAGE_INVENTORY",
        "MANAGE_SUPPLIERS",
    },
    "readonly_auditor": _VIEW_ALL | {
        "VIEW_REPORTS",
        "EXPORT_DATA",
        "VIEW_AUDIT_LOG",
    },
}

VALID_ROLES = tuple(DEFAULT_ROLE_PERMISSIONS.keys())
