# Overview: Service-layer operations for sales invoices; the draft/completed/cancelled entry points.

from __future__ import annotations

from datetime import date

from flask import current_app

from ..errors import NotFoundError, ValidationError, InvalidStateTransition
from ..extensions import db
from ..models import Customer, DocumentClass, DocumentStatus, Invoice, InvoiceLine
from ..time_utils import parse_document_date, utcnow
from ..validation import (
    MAX_ADDRESS_LENGTH,
    MAX_NAME_LENGTH,
    MAX_NOTES_LENGTH,
    normalize_gstin,
    parse_int,
    parse_line_items,
    sanitize_input,
    validate_phone,
)
from . import audit_service, document_service, pricing_service, settings_service, stock_service
from .concurrency import atomic, lock_for_update, run_with_retry
from .gst_service import from_paise
from .lifecycle_service import CANCELLED, COMPLETED, parse_status, require_save_status, require_transition
from .permission_service import require_permission
"""
Invoice Invariants (authoritative)

- An invoice gets its number on its first save (draft or completed) and
  keeps it forever; a number is never handed out twice.
- Completing an invoice is one transaction: availability check, number,
  totals, lines, stock deduction and ledger rows all commit together or
  not at all.
- Stock is checked (and every shortage reported) before anything changes.
- A completed invoice is never edited. Cancelling it appends compensating
  ledger rows for whatever has not already been returned.
- The audit log is written after the commit and cannot undo it.
"""

PAYMENT_MODES = ("cash", "card", "upi", "credit", "bank")
WALK_IN_NAME = "Walk-in Customer"


def _actor_id(actor) -> int | None:
    return getattr(getattr(actor, "user", actor), "id", None)


def _parse_header(payload: dict) -> dict:
    """Customer snapshot, date, payment mode and notes from a save request."""
    customer = None
    if payload.get("customer_id") is not None:
        customer_id = parse_int(payload["customer_id"], "customer_id", minimum=1)
        customer = db.session.get(Customer, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found", details={"customer_id": customer_id})

    if customer is not None:
        header = {
            "customer_id": customer.id,
            "customer_name": customer.name,
            "customer_gstin": customer.gstin,
            "customer_address": customer.address,
            "customer_phone": customer.phone,
        }
        party_state = customer.state_code
    else:
        name = sanitize_input(payload.get("customer_name"), "customer_name") or WALK_IN_NAME
        address = sanitize_input(payload.get("customer_address"), "customer_address") or None
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f"customer_name must be less than {MAX_NAME_LENGTH} characters")
        if address and len(address) > MAX_ADDRESS_LENGTH:
            raise ValidationError(f"customer_address must be less than {MAX_ADDRESS_LENGTH} characters")
        header = {
            "customer_id": None,
            "customer_name": name,
            "customer_gstin": normalize_gstin(payload.get("customer_gstin"), "customer_gstin"),
            "customer_address": address,
            "customer_phone": validate_phone(payload.get("customer_phone")),
        }
        party_state = None

    header["is_inter_state"] = pricing_service.resolve_inter_state(
        payload.get("is_inter_state"),
        header["customer_gstin"],
        party_state,
    )

    payment_mode = payload.get("payment_mode") or "cash"
    if isinstance(payment_mode, str):
        payment_mode = payment_mode.strip().lower()
    if payment_mode not in PAYMENT_MODES:
        raise ValidationError(f"payment_mode must be one of: {', '.join(PAYMENT_MODES)}")
    header["payment_mode"] = payment_mode

    try:
        header["document_date"] = parse_document_date(payload.get("document_date"))
    except ValueError:
        raise ValidationError("document_date must be an ISO date (YYYY-MM-DD)")

    notes = sanitize_input(payload.get("notes"), "notes") or None
    if notes and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes must be less than {MAX_NOTES_LENGTH} characters")
    header["notes"] = notes
    return header


def _load_for_update(invoice_id: int) -> Invoice:
    invoice = (
        lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id))
        .populate_existing()
        .first()
    )
    if invoice is None:
        raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
    return invoice


def _label(invoice: Invoice) -> str:
    return f"invoice {invoice.document_number or invoice.id}"


def save_invoice(actor, payload: dict, status=None, invoice_id: int | None = None) -> Invoice:
    """
    Create or update an invoice as a draft, or complete it.

    Args:
        actor: SessionContext (or User) performing the save
        payload: customer, date, payment mode, notes and "lines"
                 (item_id, quantity, optional unit_price / discount / gst_percent)
        status: "draft" or "completed"; defaults to payload["status"], then draft
        invoice_id: existing draft to update

    Raises:
        PermissionDeniedError, ValidationError, InvalidLineItem, NotFoundError,
        InsufficientStock, InvalidStateTransition, DuplicateDocumentNumber,
        StorageFailure
    """
    payload = payload or {}
    status = require_save_status(status or payload.get("status") or DocumentStatus.DRAFT)

    require_permission(actor, "CREATE_INVOICE")
    if invoice_id is not None:
        existing = db.session.get(Invoice, invoice_id)
        if existing is None:
            raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
        if existing.created_by_user_id != _actor_id(actor):
            require_permission(actor, "EDIT_INVOICE")

    lines = parse_line_items(payload.get("lines"))
    header = _parse_header(payload)
    actor_id = _actor_id(actor)
    previous = {}

    def _op() -> Invoice:
        with atomic():
            if invoice_id is None:
                require_transition(None, status, document="invoice")
                invoice = None
            else:
                invoice = _load_for_update(invoice_id)
                require_transition(invoice.status, status, document=_label(invoice))
                previous.clear()
                previous.update(invoice.to_dict(include_lines=False))

            priced = pricing_service.price_lines(
                lines,
                is_inter_state=header["is_inter_state"],
                default_price="selling_price_paise",
            )
            movements = [p.movement() for p in priced]

            if status == COMPLETED:
                # Dry run first: nothing is numbered or written if stock is short
                stock_service.ensure_available(movements)

            if invoice is None:
                invoice = Invoice(created_by_user_id=actor_id)
                db.session.add(invoice)
            for key, value in header.items():
                setattr(invoice, key, value)
            for key, value in pricing_service.totals_columns(priced).items():
                setattr(invoice, key, value)

            if invoice.lines:
                invoice.lines.clear()
                db.session.flush()
            invoice.lines.extend(InvoiceLine(**p.line_columns()) for p in priced)

            fiscal_year = document_service.fiscal_year_label(header["document_date"])
            if invoice.document_number is not None and invoice.fiscal_year != fiscal_year:
                raise ValidationError(
                    f"document_date falls in {fiscal_year} but {invoice.document_number} "
                    f"was numbered in {invoice.fiscal_year}",
                    details={"fiscal_year": invoice.fiscal_year, "document_date": header["document_date"].isoformat()},
                )
            if invoice.document_number is None:
                invoice.fiscal_year = fiscal_year
                invoice.document_number = document_service.allocate_unused(
                    DocumentClass.INVOICE,
                    fiscal_year,
                    prefix=settings_service.get_setting("invoice.prefix"),
                )

            invoice.status = status
            db.session.flush()

            if status == COMPLETED:
                stock_service.apply_sale(movements, invoice.document_number, actor_user_id=actor_id)
                invoice.completed_at = utcnow()
                invoice.completed_by_user_id = actor_id

            return invoice

    invoice = run_with_retry(_op)

    current_app.logger.info(
        "Invoice %s saved as %s (grand total paise=%s)",
        invoice.document_number, invoice.status.value, invoice.grand_total_paise,
    )
    audit_service.record(
        "invoice.completed" if status == COMPLETED else "invoice.draft_saved",
        "invoice",
        invoice.document_number,
        actor=actor,
        previous_values=previous or None,
        new_values=invoice.to_dict(include_lines=False),
    )
    return invoice


def complete_invoice(actor, invoice_id: int) -> Invoice:
    """Complete a draft as it stands (lines and header unchanged)."""
    invoice = get_invoice(invoice_id)
    payload = {
        "customer_id": invoice.customer_id,
        "customer_name": invoice.customer_name,
        "customer_gstin": invoice.customer_gstin,
        "customer_address": invoice.customer_address,
        "customer_phone": invoice.customer_phone,
        "is_inter_state": invoice.is_inter_state,
        "payment_mode": invoice.payment_mode,
        "document_date": invoice.document_date.isoformat(),
        "notes": invoice.notes,
        "lines": [
            {
                "item_id": line.item_id,
                "quantity": line.quantity,
                "unit_price": from_paise(line.unit_price_paise),
                "discount": from_paise(line.discount_paise),
                "gst_percent": str(line.gst_percent),
            }
            for line in invoice.lines
        ],
    }
    return save_invoice(actor, payload, COMPLETED, invoice_id=invoice_id)


def cancel_invoice(actor, invoice_id: int, reason: str | None = None) -> Invoice:
    """
    Cancel a draft or completed invoice.

    A completed invoice gets its unreturned quantities put back on hand with
    'adjustment' ledger rows referencing CANCEL-<number>. Cancelling twice
    raises InvalidStateTransition.
    """
    require_permission(actor, "CANCEL_INVOICE")
    actor_id = _actor_id(actor)
    reason = sanitize_input(reason, "reason") or None
    previous = {}

    def _op() -> Invoice:
        with atomic():
            invoice = _load_for_update(invoice_id)
            require_transition(invoice.status, CANCELLED, document=_label(invoice))
            previous.clear()
            previous.update(invoice.to_dict(include_lines=False))

            if invoice.status == COMPLETED:
                movements = [
                    stock_service.StockMovement(
                        item_id=line.item_id,
                        quantity=line.quantity - line.returned_quantity,
                        name=line.item_name,
                    )
                    for line in invoice.lines
                    if line.quantity > line.returned_quantity
                ]
                if movements:
                    stock_service.reverse(
                        movements,
                        invoice.document_number,
                        original_type=stock_service.SALE,
                        actor_user_id=actor_id,
                        note=reason,
                    )

            invoice.status = CANCELLED
            invoice.cancelled_at = utcnow()
            invoice.cancelled_by_user_id = actor_id
            invoice.cancel_reason = (reason or "")[:255] or None
            return invoice

    invoice = run_with_retry(_op)

    current_app.logger.info("Invoice %s cancelled", invoice.document_number)
    audit_service.record(
        "invoice.cancelled",
        "invoice",
        invoice.document_number,
        actor=actor,
        previous_values=previous,
        new_values=invoice.to_dict(include_lines=False),
        details=reason,
    )
    return invoice


def record_sales_return(actor, invoice_id: int, lines: list[dict], reason: str | None = None) -> Invoice:
    """
    Take goods back against a completed invoice.

    lines: [{"line_id": ..., "quantity": ...}]. A line can never have more
    returned than was sold across all returns. Stock comes back as 'return'
    ledger rows referencing RET-<number>.
    """
    require_permission(actor, "RECORD_SALES_RETURN")
    if not isinstance(lines, list) or not lines:
        raise ValidationError("At least one return line is required")

    requested: dict[int, int] = {}
    for raw in lines:
        if not isinstance(raw, dict):
            raise ValidationError("Return lines must be objects")
        line_id = parse_int(raw.get("line_id"), "line_id", minimum=1)
        quantity = parse_int(raw.get("quantity"), "quantity", minimum=1)
        requested[line_id] = requested.get(line_id, 0) + quantity

    actor_id = _actor_id(actor)
    reason = sanitize_input(reason, "reason") or None

    def _op() -> Invoice:
        with atomic():
            invoice = _load_for_update(invoice_id)
            if invoice.status != COMPLETED:
                raise InvalidStateTransition(
                    f"Returns can only be recorded against a completed invoice ({_label(invoice)} is {invoice.status.value})",
                    details={"status": invoice.status.value},
                )

            by_id = {line.id: line for line in invoice.lines}
            movements = []
            for line_id, quantity in requested.items():
                line = by_id.get(line_id)
                if line is None:
                    raise NotFoundError(
                        "Invoice line not found",
                        details={"invoice_id": invoice.id, "line_id": line_id},
                    )
                returnable = line.quantity - line.returned_quantity
                if quantity > returnable:
                    raise ValidationError(
                        f"Cannot return {quantity} of '{line.item_name}'; only {returnable} returnable",
                        details={"line_id": line_id, "requested": quantity, "returnable": returnable},
                    )
                line.returned_quantity = line.returned_quantity + quantity
                movements.append(stock_service.StockMovement(
                    item_id=line.item_id,
                    quantity=quantity,
                    name=line.item_name,
                ))

            stock_service.record_return(
                movements,
                f"RET-{invoice.document_number}",
                actor_user_id=actor_id,
                note=reason,
            )
            return invoice

    invoice = run_with_retry(_op)

    current_app.logger.info("Sales return recorded against %s", invoice.document_number)
    audit_service.record(
        "invoice.returned",
        "invoice",
        invoice.document_number,
        actor=actor,
        new_values={"returned": {str(k): v for k, v in requested.items()}},
        details=reason,
    )
    return invoice


def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise NotFoundError("Invoice not found", details={"invoice_id": invoice_id})
    return invoice


def get_invoice_by_number(document_number: str) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(document_number=document_number).first()
    if invoice is None:
        raise NotFoundError("Invoice not found", details={"document_number": document_number})
    return invoice


def list_invoices(
    *,
    status=None,
    from_date: date | None = None,
    to_date: date | None = None,
    customer_id: int | None = None,
    limit: int = 100,
    offset: int = 0,
) -> list[Invoice]:
    """Newest first. Date bounds are inclusive and apply to the document date."""
    query = db.session.query(Invoice)
    if status is not None:
        query = query.filter(Invoice.status == parse_status(status))
    if from_date:
        query = query.filter(Invoice.document_date >= from_date)
    if to_date:
        query = query.filter(Invoice.document_date <= to_date)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    return (
        query.order_by(Invoice.document_date.desc(), Invoice.id.desc())
        .offset(max(offset, 0))
        .limit(min(max(limit, 1), 500))
        .all()
    )
