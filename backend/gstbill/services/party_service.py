# Overview: Service-layer operations for customers and suppliers.

"""
Customers and suppliers.

Documents snapshot party details when saved, so editing a party never
changes an issued invoice or purchase.
"""
from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Customer, Supplier
from ..validation import (
    ModelValidationPolicy,
    normalize_gstin,
    validate_email,
    validate_payload,
    validate_phone,
)
from . import audit_service
from .concurrency import atomic
from .gst_service import state_code_from_gstin
from .permission_service import require_permission

_PARTY_FIELDS = {"name", "phone", "gstin", "state_code", "address", "email"}

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields=_PARTY_FIELDS | {"is_walk_in"},
    required_on_create={"name"},
    sanitized_fields={"name", "address"},
)
SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields=set(_PARTY_FIELDS),
    required_on_create={"name"},
    sanitized_fields={"name", "address"},
)

_KINDS = {
    "customer": (Customer, CUSTOMER_POLICY, "MANAGE_CUSTOMERS"),
    "supplier": (Supplier, SUPPLIER_POLICY, "MANAGE_SUPPLIERS"),
}


def _kind(kind: str):
    try:
        return _KINDS[kind]
    except KeyError:
        raise ValueError(f"Unknown party kind: {kind}")


def _build_patch(model, policy, payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=partial)
    if "gstin" in patch:
        patch["gstin"] = normalize_gstin(patch["gstin"])
        # A registered party's state is the GSTIN prefix
        if patch["gstin"]:
            patch["state_code"] = state_code_from_gstin(patch["gstin"])
    if "phone" in patch:
        patch["phone"] = validate_phone(patch["phone"])
    if "email" in patch:
        patch["email"] = validate_email(patch["email"])
    if patch.get("state_code") is not None:
        code = patch["state_code"].strip()
        if not code.isdigit() or len(code) > 2:
            raise ValidationError("state_code must be a 2 digit GST state code")
        patch["state_code"] = code.zfill(2)
    return patch


def create_party(actor, kind: str, payload: dict):
    model, policy, permission = _kind(kind)
    require_permission(actor, permission)
    patch = _build_patch(model, policy, payload, partial=False)

    with atomic():
        party = model(**patch)
        db.session.add(party)

    audit_service.record(f"{kind}.created", kind, party.id, actor=actor, new_values=party.to_dict())
    return party


def update_party(actor, kind: str, party_id: int, payload: dict):
    model, policy, permission = _kind(kind)
    require_permission(actor, permission)
    party = get_party(kind, party_id)
    patch = _build_patch(model, policy, payload, partial=True)

    previous = party.to_dict()
    with atomic():
        for key, value in patch.items():
            setattr(party, key, value)

    audit_service.record(
        f"{kind}.updated", kind, party.id,
        actor=actor, previous_values=previous, new_values=party.to_dict(),
    )
    return party


def get_party(kind: str, party_id: int):
    model, _, _ = _kind(kind)
    party = db.session.get(model, party_id)
    if party is None:
        raise NotFoundError(f"{kind.capitalize()} not found", details={f"{kind}_id": party_id})
    return party


def list_parties(kind: str, *, search: str | None = None):
    model, _, _ = _kind(kind)
    query = db.session.query(model)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(model.name.ilike(like), model.phone.ilike(like), model.gstin.ilike(like)))
    return query.order_by(model.name.asc()).all()
