# Overview: All permission definitions organized by category.
# Each permission is defined as: (code, name, description, category)

from .categories import PermissionCategory


# -- SALES --

SALES_PERMISSIONS = [
    (
        "VIEW_INVOICES",
        "View Invoices",
        "View sales invoices and drafts",
        PermissionCategory.SALES,
    ),
    (
        "CREATE_INVOICE",
        "Create Invoice",
        "Create invoices and complete own drafts",
        PermissionCategory.SALES,
    ),
    (
        "EDIT_INVOICE",
        "Edit Invoice",
        "Edit draft invoices created by other users",
        PermissionCategory.SALES,
    ),
    (
        "CANCEL_INVOICE",
        "Cancel Invoice",
        "Cancel invoices (completed invoices put stock back)",
        PermissionCategory.SALES,
    ),
    (
        "RECORD_SALES_RETURN",
        "Record Sales Return",
        "Take goods back against a completed invoice",
        PermissionCategory.SALES,
    ),
]


# -- PURCHASES --

PURCHASE_PERMISSIONS = [
    (
        "VIEW_PURCHASES",
        "View Purchases",
        "View purchase entries and drafts",
        PermissionCategory.PURCHASES,
    ),
    (
        "CREATE_PURCHASE",
        "Create Purchase",
        "Create purchase entries and complete own drafts",
        PermissionCategory.PURCHASES,
    ),
    (
        "EDIT_PURCHASE",
        "Edit Purchase",
        "Edit draft purchases created by other users",
        PermissionCategory.PURCHASES,
    ),
    (
        "CANCEL_PURCHASE",
        "Cancel Purchase",
        "Cancel purchases (completed purchases take stock back out)",
        PermissionCategory.PURCHASES,
    ),
]


# -- INVENTORY --

INVENTORY_PERMISSIONS = [
    (
        "VIEW_INVENTORY",
        "View Inventory",
        "View items, stock levels and the stock ledger",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_INVENTORY",
        "Manage Inventory",
        "Create and edit items, set opening stock, adjust stock",
        PermissionCategory.INVENTORY,
    ),
]


# -- PARTIES --

PARTY_PERMISSIONS = [
    (
        "MANAGE_CUSTOMERS",
        "Manage Customers",
        "Create and edit customers",
        PermissionCategory.PARTIES,
    ),
    (
        "MANAGE_SUPPLIERS",
        "Manage Suppliers",
        "Create and edit suppliers",
        PermissionCategory.PARTIES,
    ),
]


# -- REPORTS --

REPORT_PERMISSIONS = [
    (
        "VIEW_REPORTS",
        "View Reports",
        "HSN summary, low stock and ledger integrity reports",
        PermissionCategory.REPORTS,
    ),
    (
        "EXPORT_DATA",
        "Export Data",
        "Download reports and the audit log as CSV",
        PermissionCategory.REPORTS,
    ),
]


# -- USERS --

USER_PERMISSIONS = [
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create users, assign roles, deactivate accounts",
        PermissionCategory.USERS,
    ),
]


# -- SYSTEM --

SYSTEM_PERMISSIONS = [
    (
        "VIEW_AUDIT_LOG",
        "View Audit Log",
        "Access the audit log",
        PermissionCategory.SYSTEM,
    ),
    (
        "MANAGE_SETTINGS",
        "Manage Settings",
        "View and reset document sequences",
        PermissionCategory.SYSTEM,
    ),
]


PERMISSION_DEFINITIONS = (
    SALES_PERMISSIONS
    + PURCHASE_PERMISSIONS
    + INVENTORY_PERMISSIONS
    + PARTY_PERMISSIONS
    + REPORT_PERMISSIONS
    + USER_PERMISSIONS
    + SYSTEM_PERMISSIONS
)
