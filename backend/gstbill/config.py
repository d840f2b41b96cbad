# backend/gstbill/config.py
from __future__ import annotations
import os


def _rates_from_env(raw: str) -> tuple[str, ...]:
    return tuple(part.strip() for part in raw.split(",") if part.strip())


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/gstbill.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///gstbill.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Permitted GST slabs (percent). Items and lines must use one of these.
    GST_RATES = _rates_from_env(os.environ.get("GST_RATES", "0,5,12,18,28"))

    INVOICE_PREFIX = os.environ.get("INVOICE_PREFIX", "INV")
    PURCHASE_PREFIX = os.environ.get("PURCHASE_PREFIX", "PUR")

    # Seller identity, used to decide interstate supply when a buyer GSTIN is known.
    # Defaults only: values saved through /api/settings take precedence.
    BUSINESS_NAME = os.environ.get("BUSINESS_NAME", "")
    BUSINESS_ADDRESS = os.environ.get("BUSINESS_ADDRESS", "")
    BUSINESS_PHONE = os.environ.get("BUSINESS_PHONE", "")
    BUSINESS_EMAIL = os.environ.get("BUSINESS_EMAIL", "")
    BUSINESS_GSTIN = os.environ.get("BUSINESS_GSTIN", "")
    BUSINESS_STATE_CODE = os.environ.get("BUSINESS_STATE_CODE", "")

    # Wall clock for default document dates (and so for the fiscal year they fall in)
    BUSINESS_TIMEZONE = os.environ.get("BUSINESS_TIMEZONE", "Asia/Kolkata")

    # Counter value before the first document of each fiscal year
    SEQUENCE_START = int(os.environ.get("SEQUENCE_START", "0"))

    SESSION_HOURS = int(os.environ.get("SESSION_HOURS", "12"))

    # bcrypt cost factor for operator passwords
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))
