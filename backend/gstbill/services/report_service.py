# Overview: Read-only reports over completed documents and the stock ledger.

from __future__ import annotations

import csv
import io
from datetime import date

from ..errors import ValidationError
from ..extensions import db
from ..models import DocumentStatus, Invoice, InvoiceLine, Item, Purchase, PurchaseLine
from . import gst_service, stock_service
from .gst_service import from_paise

_DOCUMENT_MODELS = {
    "invoice": (Invoice, InvoiceLine, InvoiceLine.invoice_id),
    "purchase": (Purchase, PurchaseLine, PurchaseLine.purchase_id),
}

HSN_CSV_COLUMNS = (
    "hsn_code", "description", "unit", "quantity",
    "taxable_value", "cgst", "sgst", "igst", "total_tax", "gst_rates",
)


def _models(document_type: str):
    try:
        return _DOCUMENT_MODELS[document_type]
    except KeyError:
        raise ValidationError("type must be 'invoice' or 'purchase'")


def hsn_summary_for_period(
    document_type: str = "invoice",
    *,
    from_date: date | None = None,
    to_date: date | None = None,
) -> list[gst_service.HsnSummaryRow]:
    """
    HSN-wise summary of completed documents dated within the period.

    Cancelled documents are excluded; drafts never count.
    """
    document_model, line_model, fk = _models(document_type)
    query = (
        db.session.query(line_model)
        .join(document_model, document_model.id == fk)
        .filter(document_model.status == DocumentStatus.COMPLETED)
    )
    if from_date:
        query = query.filter(document_model.document_date >= from_date)
    if to_date:
        query = query.filter(document_model.document_date <= to_date)

    lines = query.order_by(line_model.hsn_code, line_model.id).all()
    return gst_service.hsn_summary(line.to_summary_input() for line in lines)


def hsn_summary_csv(rows) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(HSN_CSV_COLUMNS)
    for row in rows:
        data = row.to_dict()
        data["gst_rates"] = " ".join(data["gst_rates"])
        writer.writerow([data[c] for c in HSN_CSV_COLUMNS])
    return buffer.getvalue()


def tax_totals_for_period(
    document_type: str = "invoice",
    *,
    from_date: date | None = None,
    to_date: date | None = None,
) -> dict:
    """Output (invoices) or input (purchases) tax for completed documents."""
    document_model, _, _ = _models(document_type)
    query = db.session.query(
        db.func.count(document_model.id),
        db.func.coalesce(db.func.sum(document_model.subtotal_paise), 0),
        db.func.coalesce(db.func.sum(document_model.total_cgst_paise), 0),
        db.func.coalesce(db.func.sum(document_model.total_sgst_paise), 0),
        db.func.coalesce(db.func.sum(document_model.total_igst_paise), 0),
        db.func.coalesce(db.func.sum(document_model.grand_total_paise), 0),
    ).filter(document_model.status == DocumentStatus.COMPLETED)
    if from_date:
        query = query.filter(document_model.document_date >= from_date)
    if to_date:
        query = query.filter(document_model.document_date <= to_date)

    count, taxable, cgst, sgst, igst, grand = query.one()
    return {
        "type": document_type,
        "document_count": count,
        "taxable_value": str(from_paise(taxable)),
        "cgst": str(from_paise(cgst)),
        "sgst": str(from_paise(sgst)),
        "igst": str(from_paise(igst)),
        "total_tax": str(from_paise(cgst + sgst + igst)),
        "grand_total": str(from_paise(grand)),
    }


def ledger_integrity_report() -> dict:
    """Run verify_ledger_chain over every item; only items with problems are listed."""
    broken = {}
    item_ids = [row[0] for row in db.session.query(Item.id).order_by(Item.id).all()]
    for item_id in item_ids:
        problems = stock_service.verify_ledger_chain(item_id)
        if problems:
            broken[str(item_id)] = problems
    return {"items_checked": len(item_ids), "items_with_problems": broken}


def stock_valuation(*, include_inactive: bool = False) -> dict:
    """On-hand quantity valued at each item's latest purchase price."""
    query = db.session.query(Item)
    if not include_inactive:
        query = query.filter(Item.is_active.is_(True))
    items = query.order_by(Item.name, Item.id).all()

    rows = []
    total_quantity = 0
    total_value = 0
    for item in items:
        value = item.current_stock * item.purchase_price_paise
        total_quantity += item.current_stock
        total_value += value
        rows.append({
            "item_id": item.id,
            "sku": item.sku,
            "name": item.name,
            "category": item.category,
            "unit": item.unit,
            "current_stock": item.current_stock,
            "purchase_price": str(from_paise(item.purchase_price_paise)),
            "value": str(from_paise(value)),
            "is_low_stock": item.is_low_stock,
        })
    return {
        "items": rows,
        "total_quantity": total_quantity,
        "total_value": str(from_paise(total_value)),
    }


def profit_for_period(from_date: date | None = None, to_date: date | None = None) -> dict:
    """
    Gross profit on completed invoices dated within the period.

    Revenue is the taxable value of each line (tax is not income). Cost is
    the sold quantity at the item's current purchase price.
    """
    query = (
        db.session.query(
            db.func.count(db.distinct(Invoice.id)),
            db.func.coalesce(db.func.sum(InvoiceLine.taxable_paise), 0),
            db.func.coalesce(db.func.sum(InvoiceLine.quantity * Item.purchase_price_paise), 0),
        )
        .select_from(InvoiceLine)
        .join(Invoice, Invoice.id == InvoiceLine.invoice_id)
        .join(Item, Item.id == InvoiceLine.item_id)
        .filter(Invoice.status == DocumentStatus.COMPLETED)
    )
    if from_date:
        query = query.filter(Invoice.document_date >= from_date)
    if to_date:
        query = query.filter(Invoice.document_date <= to_date)

    count, revenue, cost = query.one()
    return {
        "invoice_count": count,
        "revenue": str(from_paise(revenue)),
        "cost": str(from_paise(cost)),
        "profit": str(from_paise(revenue - cost)),
    }
