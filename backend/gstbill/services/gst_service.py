# Overview: Pure GST computation; no database access and no shared state.

"""
GST Tax Calculator (authoritative rounding rules)

All arithmetic is done on Decimal rupees. Rounding happens exactly once per
defined step and always "half away from zero" (Decimal ROUND_HALF_UP):

- line taxable value:  round2((unit_price - discount) * quantity)
- line GST amount:     round2(taxable * rate / 100)
- intrastate split:    cgst = round2(gst / 2), sgst = gst - cgst
                       (sgst is the remainder, so cgst + sgst == gst)
- invoice total:       round0(taxable + tax), round_off is the difference

Inputs are assumed valid (see gstbill.validation); nothing here raises for
bad business input.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

TWO_PLACES = Decimal("0.01")
WHOLE = Decimal("1")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

GSTIN_PATTERN = re.compile(r"^[0-9]{2}[A-Z]{5}[0-9]{4}[A-Z][1-9A-Z]Z[0-9A-Z]$")


def to_decimal(value) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the shortest repr, avoiding binary expansion noise
        return Decimal(str(value))
    return Decimal(value)


def round2(value) -> Decimal:
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def round0(value) -> Decimal:
    return to_decimal(value).quantize(WHOLE, rounding=ROUND_HALF_UP)


def to_paise(amount) -> int:
    """Rupees (Decimal/str/int) -> integer paise, rounding to the paisa first."""
    return int(round2(amount) * 100)


def from_paise(paise: int | None) -> Decimal:
    if paise is None:
        return ZERO
    return (Decimal(paise) / HUNDRED).quantize(TWO_PLACES)


@dataclass(frozen=True)
class TaxSplit:
    cgst: Decimal
    sgst: Decimal
    igst: Decimal

    @property
    def total(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass(frozen=True)
class LineCalculation:
    quantity: int
    unit_price: Decimal
    discount_per_unit: Decimal
    gst_percent: Decimal
    taxable_amount: Decimal
    cgst: Decimal
    sgst: Decimal
    igst: Decimal
    line_total: Decimal
    hsn_code: str = ""

    @property
    def gross_amount(self) -> Decimal:
        return round2(self.unit_price * self.quantity)

    @property
    def discount_amount(self) -> Decimal:
        return round2(self.discount_per_unit * self.quantity)

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst


@dataclass(frozen=True)
class InvoiceTotals:
    gross_amount: Decimal
    total_discount: Decimal
    subtotal: Decimal
    total_cgst: Decimal
    total_sgst: Decimal
    total_igst: Decimal
    total_tax: Decimal
    round_off: Decimal
    grand_total: Decimal


@dataclass
class HsnSummaryRow:
    hsn_code: str
    description: str
    unit: str
    quantity: int = 0
    taxable_value: Decimal = ZERO
    cgst: Decimal = ZERO
    sgst: Decimal = ZERO
    igst: Decimal = ZERO
    rates: set = field(default_factory=set)

    @property
    def total_tax(self) -> Decimal:
        return self.cgst + self.sgst + self.igst

    def to_dict(self) -> dict:
        return {
            "hsn_code": self.hsn_code,
            "description": self.description,
            "unit": self.unit,
            "quantity": self.quantity,
            "taxable_value": str(self.taxable_value),
            "cgst": str(self.cgst),
            "sgst": str(self.sgst),
            "igst": str(self.igst),
            "total_tax": str(self.total_tax),
            "gst_rates": sorted(str(r) for r in self.rates),
        }


def taxable_amount(quantity: int, unit_price, discount_per_unit) -> Decimal:
    """round2((unit_price - discount) * quantity). Does not clamp the discount."""
    net = to_decimal(unit_price) - to_decimal(discount_per_unit)
    return round2(net * quantity)


def split_tax(taxable, gst_percent, is_inter_state: bool) -> TaxSplit:
    gst_amount = round2(to_decimal(taxable) * to_decimal(gst_percent) / HUNDRED)

    if is_inter_state:
        return TaxSplit(cgst=ZERO, sgst=ZERO, igst=gst_amount)

    half = round2(gst_amount / 2)
    return TaxSplit(cgst=half, sgst=gst_amount - half, igst=ZERO)


def calculate_line(
    quantity: int,
    unit_price,
    discount_per_unit,
    gst_percent,
    is_inter_state: bool,
    *,
    hsn_code: str = "",
) -> LineCalculation:
    unit_price = round2(unit_price)
    discount_per_unit = round2(discount_per_unit)
    gst_percent = to_decimal(gst_percent)

    taxable = taxable_amount(quantity, unit_price, discount_per_unit)
    split = split_tax(taxable, gst_percent, is_inter_state)

    return LineCalculation(
        quantity=quantity,
        unit_price=unit_price,
        discount_per_unit=discount_per_unit,
        gst_percent=gst_percent,
        taxable_amount=taxable,
        cgst=split.cgst,
        sgst=split.sgst,
        igst=split.igst,
        line_total=taxable + split.total,
        hsn_code=hsn_code or "",
    )


def invoice_totals(lines: Iterable[LineCalculation]) -> InvoiceTotals:
    """
    Aggregate line results.

    Every line value is already exact to the paisa, so the sums need no
    further rounding; only the grand total is rounded (to the rupee).
    """
    gross = discount = subtotal = cgst = sgst = igst = ZERO
    for line in lines:
        gross += line.gross_amount
        discount += line.discount_amount
        subtotal += line.taxable_amount
        cgst += line.cgst
        sgst += line.sgst
        igst += line.igst

    total_tax = cgst + sgst + igst
    raw_total = subtotal + total_tax
    grand_total = round0(raw_total)

    return InvoiceTotals(
        gross_amount=gross,
        total_discount=discount,
        subtotal=subtotal,
        total_cgst=cgst,
        total_sgst=sgst,
        total_igst=igst,
        total_tax=total_tax,
        round_off=grand_total - raw_total,
        grand_total=grand_total,
    )


def hsn_summary(lines: Iterable[dict]) -> list[HsnSummaryRow]:
    """
    Group line results by HSN code for the GST return's HSN section.

    Each input dict needs: hsn_code, name, unit, quantity, taxable_amount,
    cgst, sgst, igst (line totals, not per-unit values) and optionally
    gst_percent. Blank codes are grouped under "N/A".
    """
    grouped: dict[str, HsnSummaryRow] = {}
    for line in lines:
        key = (line.get("hsn_code") or "").strip() or "N/A"
        row = grouped.get(key)
        if row is None:
            row = HsnSummaryRow(
                hsn_code=key,
                description=line.get("name") or "",
                unit=line.get("unit") or "pcs",
            )
            grouped[key] = row

        row.quantity += int(line["quantity"])
        row.taxable_value += round2(line["taxable_amount"])
        row.cgst += round2(line["cgst"])
        row.sgst += round2(line["sgst"])
        row.igst += round2(line["igst"])
        if line.get("gst_percent") is not None:
            row.rates.add(to_decimal(line["gst_percent"]).normalize())

    return list(grouped.values())


# ---------------------------------------------------------------------------
# GSTIN helpers
# ---------------------------------------------------------------------------

def is_valid_gstin(gstin: str | None) -> bool:
    if not gstin:
        return False
    return bool(GSTIN_PATTERN.match(gstin.strip().upper()))


def state_code_from_gstin(gstin: str | None) -> str | None:
    if not is_valid_gstin(gstin):
        return None
    return gstin.strip()[:2]


def _state_of(value: str | None) -> str | None:
    """State code from a GSTIN or from a bare one/two digit code."""
    code = state_code_from_gstin(value)
    if code:
        return code
    value = (value or "").strip()
    if value.isascii() and value.isdigit() and len(value) <= 2 and int(value) > 0:
        return value.zfill(2)
    return None


def is_inter_state_supply(seller: str | None, buyer: str | None) -> bool:
    """
    Interstate when both states are known and differ.

    Each side may be a GSTIN or a state code. Unregistered buyers with no
    known state default to intrastate supply.
    """
    seller_state = _state_of(seller)
    buyer_state = _state_of(buyer)
    if not seller_state or not buyer_state:
        return False
    return seller_state != buyer_state


# ---------------------------------------------------------------------------
# Amount in words (Indian numbering: Crore, Lakh, Thousand)
# ---------------------------------------------------------------------------

_ONES = [
    "", "One", "Two", "Three", "Four", "Five", "Six", "Seven", "Eight", "Nine", "Ten",
    "Eleven", "Twelve", "Thirteen", "Fourteen", "Fifteen", "Sixteen", "Seventeen",
    "Eighteen", "Nineteen",
]
_TENS = ["", "", "Twenty", "Thirty", "Forty", "Fifty", "Sixty", "Seventy", "Eighty", "Ninety"]


def _below_thousand(n: int) -> str:
    if n == 0:
        return ""
    if n < 20:
        return _ONES[n]
    if n < 100:
        return _TENS[n // 10] + (" " + _ONES[n % 10] if n % 10 else "")
    rest = _below_thousand(n % 100)
    return _ONES[n // 100] + " Hundred" + (" " + rest if rest else "")


def amount_in_words(amount) -> str:
    amount = round2(amount)
    if amount == 0:
        return "Zero Rupees Only"

    rupees = int(amount)
    paise = int((amount - rupees) * 100)

    parts = []
    crore, rupees = divmod(rupees, 10_000_000)
    lakh, rupees = divmod(rupees, 100_000)
    thousand, rupees = divmod(rupees, 1_000)

    if crore:
        # Above 999 crore the crore count itself needs the full system
        parts.append((amount_in_words(crore).replace(" Rupees Only", "") if crore >= 1000 else _below_thousand(crore)) + " Crore")
    if lakh:
        parts.append(_below_thousand(lakh) + " Lakh")
    if thousand:
        parts.append(_below_thousand(thousand) + " Thousand")
    if rupees:
        parts.append(_below_thousand(rupees))

    words = " ".join(parts) if parts else "Zero"
    result = words + " Rupees"
    if paise:
        result += " and " + _below_thousand(paise) + " Paise"
    return result + " Only"
