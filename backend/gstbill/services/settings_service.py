# Overview: Service-layer operations for business settings; runtime overrides of the seller identity and document prefixes.

"""
Business Settings

Each supported key has a config fallback, so a fresh install bills with
whatever the environment says until an administrator saves a value.
Stored values win over config. Saving an empty value removes the override.

Prefix changes apply to numbers allocated afterwards; counters are per
document class and fiscal year, not per prefix.
"""

from __future__ import annotations

import re

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import BusinessSetting
from ..validation import MAX_ADDRESS_LENGTH, MAX_NAME_LENGTH, normalize_gstin, sanitize_input, validate_email, validate_phone
from . import audit_service
from .concurrency import atomic
from .gst_service import state_code_from_gstin
from .permission_service import require_permission

PREFIX_RE = re.compile(r"^[A-Z0-9-]{1,10}$")


def _text(limit: int):
    def _clean(value, key):
        value = sanitize_input(value, key)
        if len(value) > limit:
            raise ValidationError(f"{key} must be at most {limit} characters")
        return value
    return _clean


def _gstin(value, key):
    return normalize_gstin(value, key) or ""


def _state_code(value, key):
    code = str(value).strip()
    if not code.isascii() or not code.isdigit() or len(code) > 2 or int(code) == 0:
        raise ValidationError(f"{key} must be a 2 digit GST state code")
    return code.zfill(2)


def _prefix(value, key):
    prefix = str(value).strip().upper()
    if not PREFIX_RE.match(prefix):
        raise ValidationError(f"{key} must be 1-10 letters, digits or '-'")
    return prefix


def _phone(value, key):
    return validate_phone(value) or ""


def _email(value, key):
    return validate_email(value) or ""


# key -> (config fallback, validator)
SETTINGS_CATALOG = {
    "business.name": ("BUSINESS_NAME", _text(MAX_NAME_LENGTH)),
    "business.address": ("BUSINESS_ADDRESS", _text(MAX_ADDRESS_LENGTH)),
    "business.phone": ("BUSINESS_PHONE", _phone),
    "business.email": ("BUSINESS_EMAIL", _email),
    "business.gstin": ("BUSINESS_GSTIN", _gstin),
    "business.state_code": ("BUSINESS_STATE_CODE", _state_code),
    "invoice.prefix": ("INVOICE_PREFIX", _prefix),
    "purchase.prefix": ("PURCHASE_PREFIX", _prefix),
}

BUSINESS_KEYS = tuple(k for k in SETTINGS_CATALOG if k.startswith("business."))


def _stored() -> dict[str, str]:
    rows = db.session.query(BusinessSetting).all()
    return {row.key: row.value for row in rows if row.value not in (None, "")}


def get_setting(key: str) -> str:
    """Effective value for one key: stored override, else config, else ""."""
    if key not in SETTINGS_CATALOG:
        raise ValidationError(f"Unknown setting: {key}")
    row = db.session.query(BusinessSetting).filter_by(key=key).first()
    if row is not None and row.value not in (None, ""):
        return row.value
    config_key, _ = SETTINGS_CATALOG[key]
    return str(current_app.config.get(config_key) or "")


def get_effective_settings() -> dict:
    stored = _stored()
    settings = {}
    for key, (config_key, _) in SETTINGS_CATALOG.items():
        if key in stored:
            settings[key] = {"value": stored[key], "source": "stored"}
        else:
            settings[key] = {"value": str(current_app.config.get(config_key) or ""), "source": "config"}
    return settings


def update_settings(actor, updates: dict) -> dict:
    """
    Validate and save several keys at once; all or nothing.

    Raises:
        PermissionDeniedError: actor lacks MANAGE_SETTINGS
        ValidationError: unknown key, bad value, or a GSTIN whose state
                         disagrees with business.state_code
    """
    require_permission(actor, "MANAGE_SETTINGS")
    if not isinstance(updates, dict) or not updates:
        raise ValidationError("settings payload must be a non-empty object")

    unknown = sorted(k for k in updates if k not in SETTINGS_CATALOG)
    if unknown:
        raise ValidationError(f"Unknown settings: {', '.join(unknown)}", details={"keys": unknown})

    cleaned = {}
    for key, raw in updates.items():
        _, validator = SETTINGS_CATALOG[key]
        cleaned[key] = "" if raw is None or raw == "" else validator(raw, key)

    before = {key: get_setting(key) for key in cleaned}
    after_gstin = cleaned.get("business.gstin", get_setting("business.gstin"))
    after_state = cleaned.get("business.state_code", get_setting("business.state_code"))
    gstin_state = state_code_from_gstin(after_gstin)
    if gstin_state and after_state and after_state.zfill(2) != gstin_state:
        raise ValidationError(
            "business.state_code does not match the state in business.gstin",
            details={"gstin_state": gstin_state, "state_code": after_state},
        )

    user_id = getattr(getattr(actor, "user", actor), "id", None)
    with atomic():
        for key, value in cleaned.items():
            row = db.session.query(BusinessSetting).filter_by(key=key).first()
            if row is None:
                row = BusinessSetting(key=key)
                db.session.add(row)
            row.value = value or None
            row.updated_by_user_id = user_id

    current_app.logger.info("Business settings updated: %s", ", ".join(sorted(cleaned)))
    audit_service.record(
        "settings.updated",
        "settings",
        "business",
        actor=actor,
        previous_values=before,
        new_values={key: get_setting(key) for key in cleaned},
    )
    return get_effective_settings()
