from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from ..errors import ImmutableRecordError
from ..services.gst_service import from_paise
from ..time_utils import to_utc_z


LEDGER_ENTRY_TYPES = ("purchase", "sale", "adjustment", "opening", "return")


class Item(db.Model):
    """
    Stockable SKU.

    current_stock is a running balance, not a derived sum. It may only be
    changed by the stock service, which appends a StockLedgerEntry in the same
    transaction for every change. The ledger therefore always explains the
    balance: the newest entry's new_stock equals current_stock.

    Prices are stored in paise (integer minor units).
    """
    __tablename__ = "items"
    __table_args__ = (
        db.CheckConstraint("current_stock >= 0", name="ck_items_stock_non_negative"),
        db.CheckConstraint("min_stock_level >= 0", name="ck_items_min_stock_non_negative"),
        db.Index("ix_items_name", "name"),
        db.Index("ix_items_active", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(100), nullable=True)
    brand = db.Column(db.String(100), nullable=True)
    specification = db.Column(db.String(100), nullable=True)
    unit = db.Column(db.String(20), nullable=False, default="pcs")
    hsn_code = db.Column(db.String(20), nullable=True)

    purchase_price_paise = db.Column(db.Integer, nullable=False, default=0)
    selling_price_paise = db.Column(db.Integer, nullable=False, default=0)
    gst_percent = db.Column(db.Numeric(5, 2), nullable=False, default=18)

    current_stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock_level = db.Column(db.Integer, nullable=False, default=0)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_low_stock(self) -> bool:
        return self.current_stock <= self.min_stock_level

    def __repr__(self) -> str:
        return f"<Item id={self.id} sku={self.sku!r} stock={self.current_stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "category": self.category,
            "brand": self.brand,
            "specification": self.specification,
            "unit": self.unit,
            "hsn_code": self.hsn_code,
            "purchase_price": str(from_paise(self.purchase_price_paise)),
            "selling_price": str(from_paise(self.selling_price_paise)),
            "gst_percent": str(self.gst_percent),
            "current_stock": self.current_stock,
            "min_stock_level": self.min_stock_level,
            "is_low_stock": self.is_low_stock,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockLedgerEntry(db.Model):
    """
    One immutable movement of an item's stock.

    Append-only: rows are never updated or deleted (enforced by the mapper
    listeners below). Corrections are new compensating rows.

    Chain invariant, per item ordered by id:
        new_stock == previous_stock + quantity_change
        entry[i].previous_stock == entry[i-1].new_stock
    """
    __tablename__ = "stock_ledger"
    __table_args__ = (
        db.Index("ix_stock_ledger_item_occurred", "item_id", "occurred_at"),
        db.Index("ix_stock_ledger_reference", "reference_id"),
        db.CheckConstraint("new_stock = previous_stock + quantity_change", name="ck_stock_ledger_arithmetic"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    # Snapshot of the name at the time of the movement
    item_name = db.Column(db.String(255), nullable=False)

    entry_type = db.Column(db.String(16), nullable=False, index=True)

    # Document number, or a synthetic id such as "CANCEL-INV/2025-26/0001"
    reference_id = db.Column(db.String(96), nullable=False)

    quantity_change = db.Column(db.Integer, nullable=False)
    previous_stock = db.Column(db.Integer, nullable=False)
    new_stock = db.Column(db.Integer, nullable=False)

    note = db.Column(db.String(255), nullable=True)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    item = db.relationship("Item", backref=db.backref("ledger_entries", lazy="dynamic"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "item_id": self.item_id,
            "item_name": self.item_name,
            "type": self.entry_type,
            "reference_id": self.reference_id,
            "quantity_change": self.quantity_change,
            "previous_stock": self.previous_stock,
            "new_stock": self.new_stock,
            "note": self.note,
            "actor_user_id": self.actor_user_id,
            "occurred_at": to_utc_z(self.occurred_at),
        }


@event.listens_for(StockLedgerEntry, "before_update")
def _block_ledger_update(mapper, connection, target):
    raise ImmutableRecordError(
        "Stock ledger entries are append-only",
        details={"ledger_entry_id": target.id},
    )


@event.listens_for(StockLedgerEntry, "before_delete")
def _block_ledger_delete(mapper, connection, target):
    raise ImmutableRecordError(
        "Stock ledger entries cannot be deleted",
        details={"ledger_entry_id": target.id},
    )
