# Overview: Domain exceptions shared by the billing, stock and sequence services.

"""
Error taxonomy for the billing core.

Every error carries a human readable message plus a ``details`` dict that the
API layer returns verbatim. All of them are recoverable at the caller's
discretion except StorageFailure, which aborts the current operation (the
transaction has already been rolled back when it is raised).
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for billing domain errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class ValidationError(BillingError):
    """400-level input problem."""


class InvalidLineItem(ValidationError):
    """A line cannot be priced (bad quantity, price, discount or GST rate)."""


class NotFoundError(BillingError):
    status_code = 404


class InsufficientStock(BillingError):
    """
    Raised when a batch asks for more than is on hand.

    details["items"] lists every short item, not only the first one, so the
    caller can show all problems at once.
    """
    status_code = 409

    def __init__(self, shortages: list[dict], message: str | None = None):
        if message is None:
            names = ", ".join(s.get("name") or str(s["item_id"]) for s in shortages)
            message = f"Insufficient stock for: {names}"
        super().__init__(message, details={"items": shortages})
        self.shortages = shortages


class DuplicateDocumentNumber(BillingError):
    """A freshly allocated number already belongs to another document."""
    status_code = 409


class InvalidStateTransition(BillingError):
    status_code = 409


class StorageFailure(BillingError):
    """The database rejected the unit of work; nothing was applied."""
    status_code = 503


class ImmutableRecordError(BillingError):
    """An append-only record (ledger row, audit row) was about to change."""
    status_code = 409


class ConflictError(BillingError):
    """409-level business rule conflict (e.g., duplicate SKU)."""
    status_code = 409
