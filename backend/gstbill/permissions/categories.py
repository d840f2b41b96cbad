# Overview: Permission category constants for grouping related permissions.


class PermissionCategory:
    """Permission categories for organization and UI display."""
    SALES = "SALES"
    PURCHASES = "PURCHASES"
    INVENTORY = "INVENTORY"
    PARTIES = "PARTIES"
    REPORTS = "REPORTS"
    USERS = "USERS"
    SYSTEM = "SYSTEM"
