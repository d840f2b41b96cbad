# Overview: Permission system package.
# Re-exports all public APIs for backwards-compatible imports.

from .categories import PermissionCategory
from .definitions import (
    PERMISSION_DEFINITIONS,
    SALES_PERMISSIONS,
    PURCHASE_PERMISSIONS,
    INVENTORY_PERMISSIONS,
    PARTY_PERMISSIONS,
    REPORT_PERMISSIONS,
    USER_PERMISSIONS,
    SYSTEM_PERMISSIONS,
)
from .roles import DEFAULT_ROLE_PERMISSIONS, ROLE_DISPLAY_NAMES, VALID_ROLES
from .helpers import (
    get_all_permission_codes,
    get_permissions_by_category,
    get_permission_definition,
    validate_permission_code,
)

__all__ = [
    "PermissionCategory",
    "PERMISSION_DEFINITIONS",
    "SALES_PERMISSIONS",
    "PURCHASE_PERMISSIONS",
    "INVENTORY_PERMISSIONS",
    "PARTY_PERMISSIONS",
    "REPORT_PERMISSIONS",
    "USER_PERMISSIONS",
    "SYSTEM_PERMISSIONS",
    "DEFAULT_ROLE_PERMISSIONS",
    "ROLE_DISPLAY_NAMES",
    "VALID_ROLES",
    "get_all_permission_codes",
    "get_permissions_by_category",
    "get_permission_definition",
    "validate_permission_code",
]
