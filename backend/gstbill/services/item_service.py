# Overview: Service-layer operations for the item master; manual stock changes go through the ledger.

"""
Item master and manual stock operations.

Items are created with zero stock; an opening quantity, if given, goes
through stock_service.set_opening_stock so the ledger explains it from the
first row. current_stock is never writable through this module.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..errors import ConflictError, NotFoundError, ValidationError
from ..extensions import db
from ..models import Item
from ..validation import (
    MAX_STOCK,
    ModelValidationPolicy,
    parse_gst_rate,
    parse_int,
    parse_money,
    sanitize_input,
    validate_payload,
)
from . import audit_service, stock_service
from .concurrency import atomic
from .gst_service import to_paise
from .permission_service import require_permission
from .pricing_service import allowed_rates

ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "sku", "name", "category", "brand", "specification", "unit",
        "hsn_code", "min_stock_level", "is_active",
    },
    required_on_create={"sku", "name"},
    sanitized_fields={"name", "category", "brand", "specification"},
)

# Accepted in rupees, stored in paise
PRICE_FIELDS = {"purchase_price": "purchase_price_paise", "selling_price": "selling_price_paise"}


def _actor_id(actor) -> int | None:
    return getattr(getattr(actor, "user", actor), "id", None)


def _build_patch(payload: dict, *, partial: bool) -> dict:
    payload = dict(payload or {})
    extra = {}
    for field, column in PRICE_FIELDS.items():
        if field in payload:
            extra[column] = to_paise(parse_money(payload.pop(field), field))
    if "gst_percent" in payload:
        extra["gst_percent"] = parse_gst_rate(payload.pop("gst_percent"), allowed_rates())

    patch = validate_payload(model=Item, payload=payload, policy=ITEM_POLICY, partial=partial)
    if "min_stock_level" in patch and not 0 <= patch["min_stock_level"] <= MAX_STOCK:
        raise ValidationError(f"min_stock_level must be between 0 and {MAX_STOCK}")
    if "sku" in patch:
        patch["sku"] = patch["sku"].upper()
    patch.update(extra)
    return patch


def _ensure_sku_free(sku: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Item.id).filter(Item.sku == sku)
    if exclude_id is not None:
        query = query.filter(Item.id != exclude_id)
    if query.first() is not None:
        raise ConflictError("SKU already exists", details={"sku": sku})


def create_item(actor, payload: dict) -> Item:
    """
    Create an item. payload may carry "opening_stock" (integer) which is
    booked as the item's first ledger row.
    """
    require_permission(actor, "MANAGE_INVENTORY")
    payload = dict(payload or {})
    opening = payload.pop("opening_stock", None)
    if opening is not None:
        opening = parse_int(opening, "opening_stock", minimum=0, maximum=MAX_STOCK)

    patch = _build_patch(payload, partial=False)
    _ensure_sku_free(patch["sku"])

    with atomic():
        item = Item(current_stock=0, **patch)
        db.session.add(item)
        db.session.flush()
        if opening:
            stock_service.set_opening_stock(item.id, opening, actor_user_id=_actor_id(actor))

    audit_service.record("item.created", "item", item.id, actor=actor, new_values=item.to_dict())
    return item


def update_item(actor, item_id: int, payload: dict) -> Item:
    require_permission(actor, "MANAGE_INVENTORY")
    item = get_item(item_id)
    patch = _build_patch(payload, partial=True)
    if "sku" in patch:
        _ensure_sku_free(patch["sku"], exclude_id=item_id)

    previous = item.to_dict()
    with atomic():
        for key, value in patch.items():
            setattr(item, key, value)

    audit_service.record(
        "item.updated", "item", item.id,
        actor=actor, previous_values=previous, new_values=item.to_dict(),
    )
    return item


def set_opening_stock(actor, item_id: int, quantity) -> Item:
    require_permission(actor, "MANAGE_INVENTORY")
    quantity = parse_int(quantity, "quantity", minimum=1, maximum=MAX_STOCK)
    entry = stock_service.set_opening_stock(item_id, quantity, actor_user_id=_actor_id(actor))
    audit_service.record(
        "stock.opening", "item", item_id,
        actor=actor, new_values=entry.to_dict(),
    )
    return get_item(item_id)


def adjust_stock(actor, item_id: int, quantity_delta, reason: str) -> Item:
    """Manual correction; refused (not clamped) if it would go below zero."""
    require_permission(actor, "MANAGE_INVENTORY")
    quantity_delta = parse_int(quantity_delta, "quantity_delta", minimum=-MAX_STOCK, maximum=MAX_STOCK)
    entry = stock_service.adjust_stock(
        item_id,
        quantity_delta,
        reason=sanitize_input(reason, "reason")[:255],
        actor_user_id=_actor_id(actor),
    )
    audit_service.record(
        "stock.adjusted", "item", item_id,
        actor=actor, new_values=entry.to_dict(), details=reason,
    )
    return get_item(item_id)


def get_item(item_id: int) -> Item:
    item = db.session.get(Item, item_id)
    if item is None:
        raise NotFoundError("Item not found", details={"item_id": item_id})
    return item


def list_items(*, search: str | None = None, include_inactive: bool = False, low_stock_only: bool = False) -> list[Item]:
    query = db.session.query(Item)
    if not include_inactive:
        query = query.filter(Item.is_active.is_(True))
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(or_(Item.name.ilike(like), Item.sku.ilike(like), Item.hsn_code.ilike(like)))
    if low_stock_only:
        query = query.filter(Item.current_stock <= Item.min_stock_level)
    return query.order_by(Item.name.asc()).all()
