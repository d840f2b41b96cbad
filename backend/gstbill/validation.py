from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import InvalidLineItem, ValidationError
from .services.gst_service import is_valid_gstin, to_decimal


# Rs 9,99,99,999.99 keeps every amount well inside a 32-bit paise column
MAX_AMOUNT = Decimal("99999999.99")
MAX_QUANTITY = 99_999
MAX_STOCK = 999_999

MAX_NAME_LENGTH = 100
MAX_ADDRESS_LENGTH = 500
MAX_NOTES_LENGTH = 1000

_SCRIPT_RE = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_JS_URL_RE = re.compile(r"javascript:", re.IGNORECASE)
_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)
_PHONE_RE = re.compile(r"^[6-9]\d{9}$")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def sanitize_input(value: str | None, field: str = "text") -> str:
    """Strip markup and inline script hooks from free text."""
    if value is None or value == "":
        return ""
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValidationError(f"{field} must be a string", details={"field": field})
    value = str(value)
    value = _SCRIPT_RE.sub("", value)
    value = _TAG_RE.sub("", value)
    value = _JS_URL_RE.sub("", value)
    value = _HANDLER_RE.sub("", value)
    return value.strip()


def parse_int(value: Any, field: str, *, minimum: int | None = None, maximum: int | None = None) -> int:
    """
    Strict integer coercion.

    Rejects bools, floats, "12.5" and "1e3"; accepts ints and plain digit strings.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        result = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be a plain integer")
        try:
            result = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    else:
        raise ValidationError(f"{field} must be an integer")

    if minimum is not None and result < minimum:
        raise ValidationError(f"{field} must be >= {minimum}")
    if maximum is not None and result > maximum:
        raise ValidationError(f"{field} must be <= {maximum}")
    return result


def parse_money(value: Any, field: str, *, allow_negative: bool = False) -> Decimal:
    """
    Rupee amount -> Decimal with at most two fractional digits.

    JSON numbers and strings are both accepted ("199.5", 199.5).
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} must be an amount")
    try:
        amount = to_decimal(value if not isinstance(value, str) else value.strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be an amount")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite amount")
    if amount.as_tuple().exponent < -2:
        raise ValidationError(f"{field} cannot have more than 2 decimal places")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT}")
    return amount


def parse_gst_rate(value: Any, allowed_rates, field: str = "gst_percent") -> Decimal:
    """Rate must be one of the configured slabs; 18, "18" and "18.00" are equivalent."""
    try:
        rate = to_decimal(value if not isinstance(value, str) else value.strip())
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, bool) or not rate.is_finite():
        raise ValidationError(f"{field} must be a number")

    allowed = {to_decimal(r) for r in allowed_rates}
    if rate not in allowed:
        raise ValidationError(
            f"{field} must be one of: {', '.join(str(r) for r in allowed_rates)}",
            details={"field": field, "value": str(value)},
        )
    return rate


def normalize_gstin(value: str | None, field: str = "gstin") -> str | None:
    """Blank -> None; otherwise upper-cased and format checked."""
    if value is None:
        return None
    value = str(value).strip().upper()
    if not value:
        return None
    if not is_valid_gstin(value):
        raise ValidationError(f"{field} is not a valid GSTIN", details={"field": field})
    return value


def validate_phone(value: str | None) -> str | None:
    if not value:
        return None
    compact = re.sub(r"\s", "", str(value))
    if not _PHONE_RE.match(compact):
        raise ValidationError("phone must be a 10 digit Indian mobile number")
    return compact


def validate_email(value: str | None) -> str | None:
    if not value:
        return None
    value = str(value).strip()
    if len(value) > MAX_NAME_LENGTH or not _EMAIL_RE.match(value):
        raise ValidationError("email is not valid")
    return value


# ---------------------------------------------------------------------------
# Document lines
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LineInput:
    """
    One requested document line as submitted.

    unit_price and gst_percent may be None; the lifecycle fills them from the
    item master before pricing.
    """
    line_number: int
    item_id: int
    quantity: int
    unit_price: Decimal | None
    discount: Decimal
    gst_percent: Any


def parse_line_items(raw_lines: Any) -> list[LineInput]:
    """
    Shape-check the lines of a save request.

    Raises InvalidLineItem naming the (1-based) line that failed.
    """
    if not isinstance(raw_lines, list) or not raw_lines:
        raise InvalidLineItem("At least one line item is required")

    parsed = []
    for index, raw in enumerate(raw_lines, start=1):
        if not isinstance(raw, dict):
            raise InvalidLineItem(f"Line {index} must be an object", details={"line": index})
        try:
            item_id = parse_int(raw.get("item_id"), "item_id", minimum=1)
            quantity = parse_int(raw.get("quantity"), "quantity")
            unit_price = None
            if raw.get("unit_price") is not None:
                unit_price = parse_money(raw["unit_price"], "unit_price")
            discount = parse_money(raw.get("discount", 0) or 0, "discount")
        except ValidationError as exc:
            raise InvalidLineItem(f"Line {index}: {exc.message}", details={"line": index})

        parsed.append(LineInput(
            line_number=index,
            item_id=item_id,
            quantity=quantity,
            unit_price=unit_price,
            discount=discount,
            gst_percent=raw.get("gst_percent"),
        ))
    return parsed


def check_line_values(
    line_number: int,
    quantity: int,
    unit_price: Decimal,
    discount: Decimal,
    gst_percent: Any,
    allowed_rates,
) -> Decimal:
    """
    Business rules for a priced line. Returns the normalized GST rate.

    - quantity must be positive (and not absurd)
    - discount per unit may not exceed the unit price
    - the GST rate must be a configured slab
    """
    details = {"line": line_number}
    if quantity <= 0:
        raise InvalidLineItem(f"Line {line_number}: quantity must be at least 1", details=details)
    if quantity > MAX_QUANTITY:
        raise InvalidLineItem(f"Line {line_number}: quantity cannot exceed {MAX_QUANTITY}", details=details)
    if unit_price < 0:
        raise InvalidLineItem(f"Line {line_number}: unit price cannot be negative", details=details)
    if discount < 0:
        raise InvalidLineItem(f"Line {line_number}: discount cannot be negative", details=details)
    if discount > unit_price:
        raise InvalidLineItem(
            f"Line {line_number}: discount cannot exceed unit price",
            details={**details, "unit_price": str(unit_price), "discount": str(discount)},
        )
    try:
        return parse_gst_rate(gst_percent, allowed_rates)
    except ValidationError as exc:
        raise InvalidLineItem(f"Line {line_number}: {exc.message}", details={**details, **exc.details})


# ---------------------------------------------------------------------------
# Master data payloads
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    - sanitized_fields: free text passed through sanitize_input
    """
    writable_fields: set[str]
    required_on_create: set[str] = frozenset()
    sanitized_fields: set[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    if isinstance(coltype, Integer):
        return parse_int(value, col.key)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false")

    if isinstance(coltype, Numeric):
        return parse_money(value, col.key)

    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Fields that are not model columns (e.g. prices in rupees that are stored
    as paise) must be popped by the caller before validation.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}
    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)
        if k in policy.sanitized_fields:
            val = sanitize_input(val)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def parse_date_param(value: str | None, field: str):
    """Query-string date (YYYY-MM-DD) -> date, blank -> None."""
    if value is None or not str(value).strip():
        return None
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)")


def parse_bool_param(value: str | None) -> bool:
    return str(value or "").strip().lower() in {"1", "true", "yes", "on"}
