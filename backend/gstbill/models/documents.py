from __future__ import annotations

import enum

from ..extensions import db
from ..services.gst_service import from_paise
from ..time_utils import to_utc_z


class DocumentStatus(str, enum.Enum):
    DRAFT = "draft"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


class DocumentClass(str, enum.Enum):
    """Numbering families; each has its own counter per fiscal year."""
    INVOICE = "invoice"
    PURCHASE = "purchase"

    def __str__(self) -> str:
        return self.value


def _status_column():
    return db.Column(
        db.Enum(
            DocumentStatus,
            name="document_status",
            native_enum=False,
            length=16,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        nullable=False,
        default=DocumentStatus.DRAFT,
        index=True,
    )


class DocumentTotalsMixin:
    """
    Columns shared by invoices and purchases.

    All amounts are paise. subtotal is the taxable value (after discounts);
    gross_amount is before discounts.
    """
    document_number = db.Column(db.String(64), nullable=True, unique=True)
    fiscal_year = db.Column(db.String(7), nullable=True, index=True)
    document_date = db.Column(db.Date, nullable=False, index=True)

    is_inter_state = db.Column(db.Boolean, nullable=False, default=False)

    gross_amount_paise = db.Column(db.Integer, nullable=False, default=0)
    total_discount_paise = db.Column(db.Integer, nullable=False, default=0)
    subtotal_paise = db.Column(db.Integer, nullable=False, default=0)
    total_cgst_paise = db.Column(db.Integer, nullable=False, default=0)
    total_sgst_paise = db.Column(db.Integer, nullable=False, default=0)
    total_igst_paise = db.Column(db.Integer, nullable=False, default=0)
    total_tax_paise = db.Column(db.Integer, nullable=False, default=0)
    round_off_paise = db.Column(db.Integer, nullable=False, default=0)
    grand_total_paise = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, nullable=True)
    completed_by_user_id = db.Column(db.Integer, nullable=True)
    cancelled_by_user_id = db.Column(db.Integer, nullable=True)

    def _totals_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "fiscal_year": self.fiscal_year,
            "document_date": self.document_date.isoformat() if self.document_date else None,
            "status": self.status.value if self.status else None,
            "is_inter_state": self.is_inter_state,
            "gross_amount": str(from_paise(self.gross_amount_paise)),
            "total_discount": str(from_paise(self.total_discount_paise)),
            "subtotal": str(from_paise(self.subtotal_paise)),
            "total_cgst": str(from_paise(self.total_cgst_paise)),
            "total_sgst": str(from_paise(self.total_sgst_paise)),
            "total_igst": str(from_paise(self.total_igst_paise)),
            "total_tax": str(from_paise(self.total_tax_paise)),
            "round_off": str(from_paise(self.round_off_paise)),
            "grand_total": str(from_paise(self.grand_total_paise)),
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "cancel_reason": self.cancel_reason,
            "created_by_user_id": self.created_by_user_id,
            "completed_by_user_id": self.completed_by_user_id,
            "cancelled_by_user_id": self.cancelled_by_user_id,
            "version_id": self.version_id,
        }


class DocumentLineMixin:
    """Priced line; item details are snapshotted so later item edits don't rewrite history."""
    line_number = db.Column(db.Integer, nullable=False)

    item_name = db.Column(db.String(255), nullable=False)
    sku = db.Column(db.String(64), nullable=True)
    hsn_code = db.Column(db.String(20), nullable=True)
    unit = db.Column(db.String(20), nullable=False, default="pcs")

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_paise = db.Column(db.Integer, nullable=False)
    discount_paise = db.Column(db.Integer, nullable=False, default=0)
    gst_percent = db.Column(db.Numeric(5, 2), nullable=False)

    taxable_paise = db.Column(db.Integer, nullable=False)
    cgst_paise = db.Column(db.Integer, nullable=False, default=0)
    sgst_paise = db.Column(db.Integer, nullable=False, default=0)
    igst_paise = db.Column(db.Integer, nullable=False, default=0)
    line_total_paise = db.Column(db.Integer, nullable=False)

    def to_summary_input(self) -> dict:
        """Shape expected by gst_service.hsn_summary."""
        return {
            "hsn_code": self.hsn_code,
            "name": self.item_name,
            "unit": self.unit,
            "quantity": self.quantity,
            "taxable_amount": from_paise(self.taxable_paise),
            "cgst": from_paise(self.cgst_paise),
            "sgst": from_paise(self.sgst_paise),
            "igst": from_paise(self.igst_paise),
            "gst_percent": self.gst_percent,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "line_number": self.line_number,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "sku": self.sku,
            "hsn_code": self.hsn_code,
            "unit": self.unit,
            "quantity": self.quantity,
            "unit_price": str(from_paise(self.unit_price_paise)),
            "discount": str(from_paise(self.discount_paise)),
            "gst_percent": str(self.gst_percent),
            "taxable_amount": str(from_paise(self.taxable_paise)),
            "cgst": str(from_paise(self.cgst_paise)),
            "sgst": str(from_paise(self.sgst_paise)),
            "igst": str(from_paise(self.igst_paise)),
            "line_total": str(from_paise(self.line_total_paise)),
        }


class Invoice(DocumentTotalsMixin, db.Model):
    """
    Sales invoice.

    LIFECYCLE:
        draft -> completed -> cancelled
        draft -> cancelled

    Stock moves only when the invoice reaches completed, and moves back
    (through compensating ledger rows) when a completed invoice is cancelled.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.Index("ix_invoices_status_date", "status", "document_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = _status_column()

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=False, default="Walk-in Customer")
    customer_gstin = db.Column(db.String(15), nullable=True)
    customer_address = db.Column(db.String(500), nullable=True)
    customer_phone = db.Column(db.String(15), nullable=True)

    payment_mode = db.Column(db.String(16), nullable=False, default="cash")

    lines = db.relationship(
        "InvoiceLine",
        backref="invoice",
        order_by="InvoiceLine.line_number",
        cascade="all, delete-orphan",
        lazy=True,
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = self._totals_dict()
        data.update({
            "type": "invoice",
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "customer_gstin": self.customer_gstin,
            "customer_address": self.customer_address,
            "customer_phone": self.customer_phone,
            "payment_mode": self.payment_mode,
        })
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class InvoiceLine(DocumentLineMixin, db.Model):
    __tablename__ = "invoice_lines"
    __table_args__ = (
        db.UniqueConstraint("invoice_id", "line_number", name="uq_invoice_lines_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    # Units already taken back through sales returns
    returned_quantity = db.Column(db.Integer, nullable=False, default=0)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["returned_quantity"] = self.returned_quantity
        return data


class Purchase(DocumentTotalsMixin, db.Model):
    """Purchase entry (goods received from a supplier); same lifecycle as invoices."""
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_status_date", "status", "document_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    status = _status_column()

    supplier_id = db.Column(db.Integer, db.ForeignKey("suppliers.id"), nullable=True, index=True)
    supplier_name = db.Column(db.String(255), nullable=False)
    supplier_gstin = db.Column(db.String(15), nullable=True)

    # The supplier's own bill number
    supplier_invoice_ref = db.Column(db.String(64), nullable=True)

    lines = db.relationship(
        "PurchaseLine",
        backref="purchase",
        order_by="PurchaseLine.line_number",
        cascade="all, delete-orphan",
        lazy=True,
    )

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self, include_lines: bool = True) -> dict:
        data = self._totals_dict()
        data.update({
            "type": "purchase",
            "supplier_id": self.supplier_id,
            "supplier_name": self.supplier_name,
            "supplier_gstin": self.supplier_gstin,
            "supplier_invoice_ref": self.supplier_invoice_ref,
        })
        if include_lines:
            data["lines"] = [line.to_dict() for line in self.lines]
        return data


class PurchaseLine(DocumentLineMixin, db.Model):
    __tablename__ = "purchase_lines"
    __table_args__ = (
        db.UniqueConstraint("purchase_id", "line_number", name="uq_purchase_lines_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    item = db.relationship("Item")


class DocumentSequence(db.Model):
    """
    Persisted counter per (document class, fiscal year).

    current_value is the last number handed out. It is only changed by
    document_service.allocate, inside the transaction that uses the number.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_class", "fiscal_year", name="uq_doc_sequences_class_fy"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_class = db.Column(db.String(32), nullable=False, index=True)
    fiscal_year = db.Column(db.String(7), nullable=False)
    current_value = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_class": self.document_class,
            "fiscal_year": self.fiscal_year,
            "current_value": self.current_value,
            "updated_at": to_utc_z(self.updated_at),
        }
