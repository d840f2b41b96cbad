# Overview: Turns validated line requests into priced document lines and stored totals.

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..errors import InvalidLineItem, NotFoundError
from ..extensions import db
from ..models import Item
from ..validation import LineInput, check_line_values
from . import gst_service, settings_service
from .gst_service import LineCalculation, to_paise
from .stock_service import StockMovement


@dataclass(frozen=True)
class PricedLine:
    line_number: int
    item: Item
    calculation: LineCalculation

    @property
    def quantity(self) -> int:
        return self.calculation.quantity

    def movement(self) -> StockMovement:
        return StockMovement(item_id=self.item.id, quantity=self.quantity, name=self.item.name)

    def line_columns(self) -> dict:
        """Keyword arguments shared by InvoiceLine and PurchaseLine."""
        calc = self.calculation
        return {
            "line_number": self.line_number,
            "item_id": self.item.id,
            "item_name": self.item.name,
            "sku": self.item.sku,
            "hsn_code": self.item.hsn_code,
            "unit": self.item.unit,
            "quantity": calc.quantity,
            "unit_price_paise": to_paise(calc.unit_price),
            "discount_paise": to_paise(calc.discount_per_unit),
            "gst_percent": calc.gst_percent,
            "taxable_paise": to_paise(calc.taxable_amount),
            "cgst_paise": to_paise(calc.cgst),
            "sgst_paise": to_paise(calc.sgst),
            "igst_paise": to_paise(calc.igst),
            "line_total_paise": to_paise(calc.line_total),
        }


def allowed_rates() -> tuple[str, ...]:
    return tuple(current_app.config.get("GST_RATES", ("0", "5", "12", "18", "28")))


def seller_state_code() -> str | None:
    configured = settings_service.get_setting("business.state_code").strip()
    if configured:
        return configured.zfill(2)
    return gst_service.state_code_from_gstin(settings_service.get_setting("business.gstin"))


def resolve_inter_state(explicit, party_gstin: str | None, party_state_code: str | None = None) -> bool:
    """
    Interstate flag for a document.

    An explicit boolean from the request wins. Otherwise the supply is
    interstate only when both the seller's and the party's states are known
    and differ; unregistered parties are billed intrastate.
    """
    if isinstance(explicit, bool):
        return explicit

    party = party_gstin if gst_service.is_valid_gstin(party_gstin) else party_state_code
    return gst_service.is_inter_state_supply(seller_state_code(), party)


def load_items(item_ids) -> dict[int, Item]:
    ids = sorted(set(item_ids))
    items = {item.id: item for item in db.session.query(Item).filter(Item.id.in_(ids)).all()}
    missing = [i for i in ids if i not in items]
    if missing:
        raise NotFoundError("Item not found", details={"item_ids": missing})
    return items


def price_lines(
    lines: list[LineInput],
    *,
    is_inter_state: bool,
    default_price: str,
) -> list[PricedLine]:
    """
    Price every line with the tax calculator.

    default_price names the Item attribute used when a line carries no unit
    price ("selling_price_paise" for sales, "purchase_price_paise" for
    purchases). A line without a GST rate takes the item's rate.
    """
    items = load_items(line.item_id for line in lines)
    rates = allowed_rates()

    priced = []
    for line in lines:
        item = items[line.item_id]
        if not item.is_active:
            raise InvalidLineItem(
                f"Line {line.line_number}: item '{item.name}' is inactive",
                details={"line": line.line_number, "item_id": item.id},
            )

        unit_price = line.unit_price
        if unit_price is None:
            unit_price = gst_service.from_paise(getattr(item, default_price))
        gst_percent = line.gst_percent if line.gst_percent is not None else item.gst_percent

        rate = check_line_values(
            line.line_number,
            line.quantity,
            unit_price,
            line.discount,
            gst_percent,
            rates,
        )
        calculation = gst_service.calculate_line(
            line.quantity,
            unit_price,
            line.discount,
            rate,
            is_inter_state,
            hsn_code=item.hsn_code or "",
        )
        priced.append(PricedLine(line_number=line.line_number, item=item, calculation=calculation))
    return priced


def totals_columns(priced: list[PricedLine]) -> dict:
    totals = gst_service.invoice_totals(p.calculation for p in priced)
    return {
        "gross_amount_paise": to_paise(totals.gross_amount),
        "total_discount_paise": to_paise(totals.total_discount),
        "subtotal_paise": to_paise(totals.subtotal),
        "total_cgst_paise": to_paise(totals.total_cgst),
        "total_sgst_paise": to_paise(totals.total_sgst),
        "total_igst_paise": to_paise(totals.total_igst),
        "total_tax_paise": to_paise(totals.total_tax),
        "round_off_paise": to_paise(totals.round_off),
        "grand_total_paise": to_paise(totals.grand_total),
    }


def document_summary(document) -> dict:
    """HSN summary, amount in words and business letterhead for a stored invoice or purchase."""
    rows = gst_service.hsn_summary(line.to_summary_input() for line in document.lines)
    return {
        "hsn_summary": [row.to_dict() for row in rows],
        "amount_in_words": gst_service.amount_in_words(gst_service.from_paise(document.grand_total_paise)),
        "business": {
            key.split(".", 1)[1]: settings_service.get_setting(key)
            for key in settings_service.BUSINESS_KEYS
        },
    }
