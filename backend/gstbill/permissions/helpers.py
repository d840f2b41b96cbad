# Overview: Lookups over the static permission definitions.

from .definitions import PERMISSION_DEFINITIONS


def get_all_permission_codes():
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def get_permissions_by_category(category):
    return [perm for perm in PERMISSION_DEFINITIONS if perm[3] == category]


def get_permission_definition(code):
    """Full definition for a permission code as a dict, or None."""
    for perm_code, name, description, category in PERMISSION_DEFINITIONS:
        if perm_code == code:
            return {
                "code": perm_code,
                "name": name,
                "description": description,
                "category": category,
            }
    return None


def validate_permission_code(code):
    return code in get_all_permission_codes()
