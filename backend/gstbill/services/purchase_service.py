# Overview: Service-layer operations for purchase entries (goods received from suppliers).

from __future__ import annotations

from datetime import date

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import DocumentClass, DocumentStatus, Purchase, PurchaseLine, Supplier
from ..time_utils import parse_document_date, utcnow
from ..validation import (
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    normalize_gstin,
    parse_int,
    parse_line_items,
    sanitize_input,
)
from . import audit_service, document_service, pricing_service, settings_service, stock_service
from .concurrency import atomic, lock_for_update, run_with_retry
from .gst_service import to_paise
from .lifecycle_service import CANCELLED, COMPLETED, parse_status, require_save_status, require_transition
from .permission_service import require_permission
"""
Purchase Invariants (authoritative)

- Same lifecycle and numbering rules as invoices, with its own counter
  (PUR/<FY>/NNNN).
- Completing a purchase adds stock ('purchase' ledger rows) and records
  each line's unit price as the item's latest purchase price, in the same
  transaction.
- Cancelling a completed purchase takes the stock back out. If some of it
  has been sold since, the cancellation is refused with InsufficientStock
  rather than driving stock negative.
"""

MAX_SUPPLIER_REF_LENGTH = 64


def _actor_id(actor) -> int | None:
    return getattr(getattr(actor, "user", actor), "id", None)


def _parse_header(payload: dict) -> dict:
    supplier = None
    if payload.get("supplier_id") is not None:
        supplier_id = parse_int(payload["supplier_id"], "supplier_id", minimum=1)
        supplier = db.session.get(Supplier, supplier_id)
        if supplier is None:
            raise NotFoundError("Supplier not found", details={"supplier_id": supplier_id})

    if supplier is not None:
        header = {
            "supplier_id": supplier.id,
            "supplier_name": supplier.name,
            "supplier_gstin": supplier.gstin,
        }
        party_state = supplier.state_code
    else:
        name = sanitize_input(payload.get("supplier_name"), "supplier_name")
        if not name:
            raise ValidationError("supplier_id or supplier_name is required")
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"supplier_name must be less than {MAX_NAME_LENGTH} characters")
        header = {
            "supplier_id": None,
            "supplier_name": name,
            "supplier_gstin": normalize_gstin(payload.get("supplier_gstin"), "supplier_gstin"),
        }
        party_state = None

    header["is_inter_state"] = pricing_service.resolve_inter_state(
        payload.get("is_inter_state"),
        header["supplier_gstin"],
        party_state,
    )

    ref = sanitize_input(payload.get("supplier_invoice_ref"), "supplier_invoice_ref") or None
    if ref and len(ref) > MAX_SUPPLIER_REF_LENGTH:
        raise ValidationError(f"supplier_invoice_ref must be at most {MAX_SUPPLIER_REF_LENGTH} characters")
    header["supplier_invoice_ref"] = ref

    try:
        header["document_date"] = parse_document_date(payload.get("document_date"))
    except ValueError:
        raise ValidationError("document_date must be an ISO date (YYYY-MM-DD)")

    notes = sanitize_input(payload.get("notes"), "notes") or None
    if notes and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes must be less than {MAX_NOTES_LENGTH} characters")
    header["notes"] = notes
    return header


def _load_for_update(purchase_id: int) -> Purchase:
    purchase = (
        lock_for_update(db.session.query(Purchase).filter_by(id=purchase_id))
        .populate_existing()
        .first()
    )
    if purchase is None:
        raise NotFoundError("Purchase not found", details={"purchase_id": purchase_id})
    return purchase


def _label(purchase: Purchase) -> str:
    return f"purchase {purchase.document_number or purchase.id}"


def save_purchase(actor, payload: dict, status=None, purchase_id: int | None = None) -> Purchase:
    """
    Create or update a purchase as a draft, or complete it.

    Lines take unit_price as the supplier's price per unit; when omitted the
    item's last purchase price is used.
    """
    payload = payload or {}
    status = require_save_status(status or payload.get("status") or DocumentStatus.DRAFT)

    require_permission(actor, "CREATE_PURCHASE")
    if purchase_id is not None:
        existing = db.session.get(Purchase, purchase_id)
        if existing is None:
            raise NotFoundError("Purchase not found", details={"purchase_id": purchase_id})
        if existing.created_by_user_id != _actor_id(actor):
            require_permission(actor, "EDIT_PURCHASE")

    lines = parse_line_items(payload.get("lines"))
    header = _parse_header(payload)
    actor_id = _actor_id(actor)
    previous = {}

    def _op() -> Purchase:
        with atomic():
            if purchase_id is None:
                require_transition(None, status, document="purchase")
                purchase = None
            else:
                purchase = _load_for_update(purchase_id)
                require_transition(purchase.status, status, document=_label(purchase))
                previous.clear()
                previous.update(purchase.to_dict(include_lines=False))

            priced = pricing_service.price_lines(
                lines,
                is_inter_state=header["is_inter_state"],
                default_price="purchase_price_paise",
            )

            if purchase is None:
                purchase = Purchase(created_by_user_id=actor_id)
                db.session.add(purchase)
            for key, value in header.items():
                setattr(purchase, key, value)
            for key, value in pricing_service.totals_columns(priced).items():
                setattr(purchase, key, value)

            if purchase.lines:
                purchase.lines.clear()
                db.session.flush()
            purchase.lines.extend(PurchaseLine(**p.line_columns()) for p in priced)

            fiscal_year = document_service.fiscal_year_label(header["document_date"])
            if purchase.document_number is not None and purchase.fiscal_year != fiscal_year:
                raise ValidationError(
                    f"document_date falls in {fiscal_year} but {purchase.document_number} "
                    f"was numbered in {purchase.fiscal_year}",
                    details={"fiscal_year": purchase.fiscal_year, "document_date": header["document_date"].isoformat()},
                )
            if purchase.document_number is None:
                purchase.fiscal_year = fiscal_year
                purchase.document_number = document_service.allocate_unused(
                    DocumentClass.PURCHASE,
                    fiscal_year,
                    prefix=settings_service.get_setting("purchase.prefix"),
                )

            purchase.status = status
            db.session.flush()

            if status == COMPLETED:
                stock_service.apply_purchase(
                    [p.movement() for p in priced],
                    purchase.document_number,
                    actor_user_id=actor_id,
                )
                # Latest purchase price wins when an item appears on several lines
                for p in priced:
                    p.item.purchase_price_paise = to_paise(p.calculation.unit_price)
                purchase.completed_at = utcnow()
                purchase.completed_by_user_id = actor_id

            return purchase

    purchase = run_with_retry(_op)

    current_app.logger.info(
        "Purchase %s saved as %s (grand total paise=%s)",
        purchase.document_number, purchase.status.value, purchase.grand_total_paise,
    )
    audit_service.record(
        "purchase.completed" if status == COMPLETED else "purchase.draft_saved",
        "purchase",
        purchase.document_number,
        actor=actor,
        previous_values=previous or None,
        new_values=purchase.to_dict(include_lines=False),
    )
    return purchase


def cancel_purchase(actor, purchase_id: int, reason: str | None = None) -> Purchase:
    """
    Cancel a draft or completed purchase.

    Item purchase prices set by the purchase are left as they are.
    """
    require_permission(actor, "CANCEL_PURCHASE")
    actor_id = _actor_id(actor)
    reason = sanitize_input(reason, "reason") or None
    previous = {}

    def _op() -> Purchase:
        with atomic():
            purchase = _load_for_update(purchase_id)
            require_transition(purchase.status, CANCELLED, document=_label(purchase))
            previous.clear()
            previous.update(purchase.to_dict(include_lines=False))

            if purchase.status == COMPLETED:
                stock_service.reverse(
                    [
                        stock_service.StockMovement(
                            item_id=line.item_id,
                            quantity=line.quantity,
                            name=line.item_name,
                        )
                        for line in purchase.lines
                    ],
                    purchase.document_number,
                    original_type=stock_service.PURCHASE,
                    actor_user_id=actor_id,
                    note=reason,
                )

            purchase.status = CANCELLED
            purchase.cancelled_at = utcnow()
            purchase.cancelled_by_user_id = actor_id
            purchase.cancel_reason = (reason or "")[:255] or None
            return purchase

    purchase = run_with_retry(_op)

    current_app.logger.info("Purchase %s cancelled", purchase.document_number)
    audit_service.record(
        "purchase.cancelled",
        "purchase",
        purchase.document_number,
        actor=actor,
        previous_values=previous,
        new_values=purchase.to_dict(include_lines=False),
        details=reason,
    )
    return purchase


def get_purchase(purchase_id: int) -> Purchase:
    purchase = db.session.get(Purchase, purchase_id)
    if purchase is None:
        raise NotFoundError("Purchase not found", details={"purchase_id": purchase_id})
    return purchase


def list_purchases(
    *,
    status=None,
    from_date: date | None = None,
    to_date: date | None = None,
    supplier_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Purchase]:
    query = db.session.query(Purchase)
    if status is not None:
        query = query.filter(Purchase.status == parse_status(status))
    if from_date:
        query = query.filter(Purchase.document_date >= from_date)
    if to_date:
        query = query.filter(Purchase.document_date <= to_date)
    if supplier_id is not None:
        query = query.filter(Purchase.supplier_id == supplier_id)
    return (
        query.order_by(Purchase.document_date.desc(), Purchase.id.desc())
        .offset(max(offset, 0))
        .limit(min(max(limit, 1), 500))
        .all()
    )
