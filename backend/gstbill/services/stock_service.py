# Overview: Service-layer operations for stock; item balances plus the append-only stock ledger.

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass

from ..errors import InsufficientStock, NotFoundError, ValidationError
from ..extensions import db
from ..models import Item, StockLedgerEntry
from ..time_utils import utcnow
from .concurrency import atomic, lock_for_update, run_with_retry
"""
Stock Ledger Invariants (authoritative)

- Item.current_stock is never negative. A batch that would push any item
  below zero is refused as a whole with InsufficientStock (never clamped).
- Every change to current_stock appends exactly one StockLedgerEntry in the
  same transaction, with previous_stock read inside that transaction.
- A batch is all-or-nothing: one atomic() unit across all its lines.
- Ledger rows are immutable. Cancelling a document appends compensating
  'adjustment' rows referencing "CANCEL-<reference>" instead of touching the
  original rows.

Entry types:
    purchase    +qty   goods received on a completed purchase
    sale        -qty   goods sold on a completed invoice
    return      +qty   goods returned against a completed invoice
    opening     +qty   first balance of an item with no history
    adjustment  +/-    manual correction, or reversal of a cancelled document
"""

SALE = "sale"
PURCHASE = "purchase"
ADJUSTMENT = "adjustment"
OPENING = "opening"
RETURN = "return"

CANCEL_PREFIX = "CANCEL-"


@dataclass(frozen=True)
class StockMovement:
    """One line of a stock batch. quantity is always positive; direction comes from the operation."""
    item_id: int
    quantity: int
    name: str | None = None


def cancellation_reference(reference_id: str) -> str:
    return f"{CANCEL_PREFIX}{reference_id}"


def _normalize(movements) -> list[StockMovement]:
    normalized = []
    for m in movements:
        if isinstance(m, dict):
            m = StockMovement(item_id=m["item_id"], quantity=m["quantity"], name=m.get("name"))
        if isinstance(m.quantity, bool) or not isinstance(m.quantity, int) or m.quantity <= 0:
            raise ValidationError(
                "Stock movement quantity must be a positive integer",
                details={"item_id": m.item_id, "quantity": m.quantity},
            )
        normalized.append(m)
    if not normalized:
        raise ValidationError("Stock batch has no lines")
    return normalized


def _requested_per_item(movements: list[StockMovement]) -> "OrderedDict[int, int]":
    totals: OrderedDict[int, int] = OrderedDict()
    for m in movements:
        totals[m.item_id] = totals.get(m.item_id, 0) + m.quantity
    return totals


def _load_items(item_ids, *, lock: bool) -> dict[int, Item]:
    """
    Read items fresh from the database.

    populate_existing() overwrites any copy already in the identity map, so
    callers never decide on a stale balance.
    """
    ids = sorted(set(item_ids))
    query = db.session.query(Item).filter(Item.id.in_(ids)).populate_existing()
    if lock:
        query = lock_for_update(query)
    items = {item.id: item for item in query.all()}

    missing = [i for i in ids if i not in items]
    if missing:
        raise NotFoundError("Item not found", details={"item_ids": missing})
    return items


def _shortages(items: dict[int, Item], movements: list[StockMovement]) -> list[dict]:
    names = {m.item_id: m.name for m in movements if m.name}
    shortages = []
    for item_id, requested in _requested_per_item(movements).items():
        item = items[item_id]
        if requested > item.current_stock:
            shortages.append({
                "item_id": item_id,
                "name": names.get(item_id) or item.name,
                "requested": requested,
                "available": item.current_stock,
                "shortfall": requested - item.current_stock,
            })
    return shortages


def validate_availability(movements) -> list[dict]:
    """
    Dry run of an outbound batch: report every shortage, change nothing.

    Quantities are summed per item first, so two lines of the same item are
    checked against the balance together.
    """
    movements = _normalize(movements)
    items = _load_items([m.item_id for m in movements], lock=False)
    return _shortages(items, movements)


def ensure_available(movements) -> None:
    shortages = validate_availability(movements)
    if shortages:
        raise InsufficientStock(shortages)


def _append_entry(
    item: Item,
    *,
    entry_type: str,
    quantity_change: int,
    reference_id: str,
    actor_user_id: int | None,
    note: str | None,
    name: str | None = None,
) -> StockLedgerEntry:
    previous = item.current_stock
    new_stock = previous + quantity_change
    if new_stock < 0:
        raise InsufficientStock([{
            "item_id": item.id,
            "name": name or item.name,
            "requested": -quantity_change,
            "available": previous,
            "shortfall": -new_stock,
        }])

    item.current_stock = new_stock
    entry = StockLedgerEntry(
        item_id=item.id,
        item_name=name or item.name,
        entry_type=entry_type,
        reference_id=reference_id,
        quantity_change=quantity_change,
        previous_stock=previous,
        new_stock=new_stock,
        note=note,
        actor_user_id=actor_user_id,
        occurred_at=utcnow(),
    )
    db.session.add(entry)
    return entry


def _apply_batch(
    movements,
    *,
    reference_id: str,
    entry_type: str,
    direction: int,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> list[StockLedgerEntry]:
    if not reference_id:
        raise ValidationError("reference_id is required")
    movements = _normalize(movements)

    def _op():
        with atomic():
            items = _load_items([m.item_id for m in movements], lock=True)

            if direction < 0:
                shortages = _shortages(items, movements)
                if shortages:
                    raise InsufficientStock(shortages)

            entries = [
                _append_entry(
                    items[m.item_id],
                    entry_type=entry_type,
                    quantity_change=direction * m.quantity,
                    reference_id=reference_id,
                    actor_user_id=actor_user_id,
                    note=note,
                    name=m.name,
                )
                for m in movements
            ]
            db.session.flush()
            return entries

    return run_with_retry(_op)


def apply_sale(movements, reference_id: str, *, actor_user_id: int | None = None) -> list[StockLedgerEntry]:
    """Deduct stock for a completed invoice. Refuses the whole batch on any shortage."""
    return _apply_batch(
        movements,
        reference_id=reference_id,
        entry_type=SALE,
        direction=-1,
        actor_user_id=actor_user_id,
    )


def apply_purchase(movements, reference_id: str, *, actor_user_id: int | None = None) -> list[StockLedgerEntry]:
    return _apply_batch(
        movements,
        reference_id=reference_id,
        entry_type=PURCHASE,
        direction=1,
        actor_user_id=actor_user_id,
    )


def reverse(
    movements,
    reference_id: str,
    *,
    original_type: str = SALE,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> list[StockLedgerEntry]:
    """
    Undo the stock effect of a document by appending the inverse movements.

    A sale is reversed by adding stock back; a purchase by taking it out
    again, which fails with InsufficientStock if the goods were already sold.
    """
    if original_type == SALE:
        direction = 1
    elif original_type == PURCHASE:
        direction = -1
    else:
        raise ValidationError(f"Cannot reverse movements of type '{original_type}'")

    return _apply_batch(
        movements,
        reference_id=cancellation_reference(reference_id),
        entry_type=ADJUSTMENT,
        direction=direction,
        actor_user_id=actor_user_id,
        note=note or f"Reversal of {reference_id}",
    )


def record_return(
    movements,
    reference_id: str,
    *,
    actor_user_id: int | None = None,
    note: str | None = None,
) -> list[StockLedgerEntry]:
    """Put returned goods back on hand."""
    return _apply_batch(
        movements,
        reference_id=reference_id,
        entry_type=RETURN,
        direction=1,
        actor_user_id=actor_user_id,
        note=note,
    )


def adjust_stock(
    item_id: int,
    quantity_delta: int,
    *,
    reason: str,
    actor_user_id: int | None = None,
    reference_id: str | None = None,
) -> StockLedgerEntry:
    """Manual correction (damage, audit count). A result below zero is refused, not clamped."""
    if isinstance(quantity_delta, bool) or not isinstance(quantity_delta, int) or quantity_delta == 0:
        raise ValidationError("quantity_delta must be a non-zero integer")
    if not reason:
        raise ValidationError("reason is required for a stock adjustment")

    def _op():
        with atomic():
            item = _load_items([item_id], lock=True)[item_id]
            entry = _append_entry(
                item,
                entry_type=ADJUSTMENT,
                quantity_change=quantity_delta,
                reference_id=reference_id or f"ADJ-{item_id}-{utcnow():%Y%m%d%H%M%S%f}",
                actor_user_id=actor_user_id,
                note=reason,
            )
            db.session.flush()
            return entry

    return run_with_retry(_op)


def set_opening_stock(item_id: int, quantity: int, *, actor_user_id: int | None = None) -> StockLedgerEntry:
    """First balance of an item. Only allowed while the item has no ledger history."""
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("Opening quantity must be a positive integer")

    def _op():
        with atomic():
            item = _load_items([item_id], lock=True)[item_id]
            has_history = (
                db.session.query(StockLedgerEntry.id)
                .filter_by(item_id=item_id)
                .first()
                is not None
            )
            if has_history:
                raise ValidationError(
                    "Opening stock can only be set for an item without stock history",
                    details={"item_id": item_id},
                )
            entry = _append_entry(
                item,
                entry_type=OPENING,
                quantity_change=quantity,
                reference_id=f"OPENING-{item_id}",
                actor_user_id=actor_user_id,
                note="Opening stock",
            )
            db.session.flush()
            return entry

    return run_with_retry(_op)


def get_ledger(item_id: int, *, limit: int | None = None) -> list[StockLedgerEntry]:
    """Ledger rows of one item in creation order."""
    query = (
        db.session.query(StockLedgerEntry)
        .filter_by(item_id=item_id)
        .order_by(StockLedgerEntry.id.asc())
    )
    if limit is not None:
        query = query.limit(limit)
    return query.all()


def entries_for_reference(reference_id: str) -> list[StockLedgerEntry]:
    return (
        db.session.query(StockLedgerEntry)
        .filter_by(reference_id=reference_id)
        .order_by(StockLedgerEntry.id.asc())
        .all()
    )


def verify_ledger_chain(item_id: int) -> list[dict]:
    """
    Check one item's ledger. Returns a list of problems (empty when sound).

    Checks, in id order: each row's arithmetic, continuity with the previous
    row, and that the last row agrees with the item's current balance.
    """
    item = db.session.query(Item).filter_by(id=item_id).populate_existing().first()
    if item is None:
        raise NotFoundError("Item not found", details={"item_id": item_id})

    problems = []
    previous = None
    for entry in get_ledger(item_id):
        if entry.new_stock != entry.previous_stock + entry.quantity_change:
            problems.append({"entry_id": entry.id, "problem": "arithmetic"})
        if previous is not None and entry.previous_stock != previous.new_stock:
            problems.append({
                "entry_id": entry.id,
                "problem": "discontinuity",
                "expected_previous_stock": previous.new_stock,
                "actual_previous_stock": entry.previous_stock,
            })
        previous = entry

    expected_balance = previous.new_stock if previous is not None else 0
    if item.current_stock != expected_balance:
        problems.append({
            "entry_id": previous.id if previous is not None else None,
            "problem": "balance_mismatch",
            "ledger_balance": expected_balance,
            "current_stock": item.current_stock,
        })
    return problems


def low_stock_items(*, include_inactive: bool = False) -> list[Item]:
    query = db.session.query(Item).filter(Item.current_stock <= Item.min_stock_level)
    if not include_inactive:
        query = query.filter(Item.is_active.is_(True))
    return query.order_by(Item.name.asc()).all()
