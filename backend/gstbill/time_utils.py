from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from flask import current_app, has_app_context

DEFAULT_BUSINESS_TIMEZONE = "Asia/Kolkata"


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def business_timezone() -> ZoneInfo:
    name = DEFAULT_BUSINESS_TIMEZONE
    if has_app_context():
        name = current_app.config.get("BUSINESS_TIMEZONE") or DEFAULT_BUSINESS_TIMEZONE
    return ZoneInfo(name)


def today() -> date:
    """
    Business date used when a document carries no explicit date.

    Taken on the business's wall clock, not UTC: 00:30 IST on 1 April is
    already the new fiscal year.
    """
    now = utcnow().replace(tzinfo=timezone.utc)
    return now.astimezone(business_timezone()).date()


def parse_document_date(value) -> date:
    """
    Normalize a document date.

    Accepts None (today), a date, a datetime (date part is kept) or an
    ISO string ("2025-03-31" or a full timestamp). A timestamp carrying an
    offset is read on the business clock.
    """
    if value is None or value == "":
        return today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        if len(s) == 10:
            return date.fromisoformat(s)
        if not s:
            return today()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        dt = datetime.fromisoformat(s)
        if dt.tzinfo is not None:
            dt = dt.astimezone(business_timezone())
        return dt.date()
    raise ValueError("invalid document date")


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")
