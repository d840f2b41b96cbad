# Overview: Service-layer operations for document numbering; fiscal-year scoped sequences.

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import DuplicateDocumentNumber, ValidationError
from ..extensions import db
from ..models import DocumentClass, DocumentSequence, Invoice, Purchase
from .concurrency import atomic, run_with_retry
"""
Document Number Invariants (authoritative)

- Format: PREFIX/FY/NNNN, e.g. INV/2025-26/0001 (zero padded to 4 digits,
  wider once a year passes 9999 documents).
- FY is the Indian fiscal year (April 1 - March 31) of the document date.
- One counter row per (document class, fiscal year). current_value is the
  last number handed out.
- allocate() increments and persists the counter inside the caller's
  transaction, under the process write lock. If the transaction rolls back,
  the number is returned with it, so committed numbers stay gapless.
- A number, once stored on a document, is never re-used or reassigned.
"""

DOCUMENT_NUMBER_PAD = 4
MAX_ALLOCATION_ATTEMPTS = 5


class DocumentSequenceError(ValidationError):
    """Raised when document sequence operations fail."""


def fiscal_year_start(for_date: date) -> int:
    return for_date.year if for_date.month >= 4 else for_date.year - 1


def fiscal_year_label(for_date: date) -> str:
    """2025-03-31 -> '2024-25'; 2025-04-01 -> '2025-26'."""
    year = fiscal_year_start(for_date)
    return f"{year}-{(year + 1) % 100:02d}"


def format_document_number(prefix: str, fiscal_year: str, value: int) -> str:
    return f"{prefix}/{fiscal_year}/{value:0{DOCUMENT_NUMBER_PAD}d}"


def _sequence_start() -> int:
    return int(current_app.config.get("SEQUENCE_START", 0))


def _current_value(document_class: str, fiscal_year: str) -> int | None:
    return (
        db.session.query(DocumentSequence.current_value)
        .filter_by(document_class=document_class, fiscal_year=fiscal_year)
        .scalar()
    )


def _increment(document_class: str, fiscal_year: str) -> int:
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_class == document_class,
            DocumentSequence.fiscal_year == fiscal_year,
        )
        .values(current_value=DocumentSequence.current_value + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        return _current_value(document_class, fiscal_year)

    first = _sequence_start() + 1
    try:
        with db.session.begin_nested():
            db.session.add(DocumentSequence(
                document_class=document_class,
                fiscal_year=fiscal_year,
                current_value=first,
            ))
        return first
    except IntegrityError:
        # Another writer created the row between our UPDATE and INSERT
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _current_value(document_class, fiscal_year)


def allocate(document_class: DocumentClass | str, fiscal_year: str, *, prefix: str) -> str:
    """
    Atomically allocate the next document number for a class and fiscal year.

    Joins the caller's atomic() unit when there is one; on its own it commits
    the counter immediately.
    """
    document_class = str(document_class)
    if not document_class:
        raise DocumentSequenceError("document_class is required")
    if not fiscal_year:
        raise DocumentSequenceError("fiscal_year is required")
    if not prefix:
        raise DocumentSequenceError("prefix is required")

    def _op() -> str:
        with atomic():
            value = _increment(document_class, fiscal_year)
            return format_document_number(prefix, fiscal_year, value)

    return run_with_retry(_op)


def peek_next_number(document_class: DocumentClass | str, fiscal_year: str, *, prefix: str) -> str:
    """Preview of the number the next allocate() would return. Reserves nothing."""
    current = _current_value(str(document_class), fiscal_year)
    if current is None:
        current = _sequence_start()
    return format_document_number(prefix, fiscal_year, current + 1)


def number_exists(document_number: str) -> bool:
    """True if any invoice or purchase already carries this number."""
    for model in (Invoice, Purchase):
        hit = (
            db.session.query(model.id)
            .filter(model.document_number == document_number)
            .first()
        )
        if hit is not None:
            return True
    return False


def list_sequences() -> list[DocumentSequence]:
    return (
        db.session.query(DocumentSequence)
        .order_by(DocumentSequence.document_class, DocumentSequence.fiscal_year)
        .all()
    )


def allocate_unused(
    document_class: DocumentClass | str,
    fiscal_year: str,
    *,
    prefix: str,
    attempts: int = MAX_ALLOCATION_ATTEMPTS,
) -> str:
    """
    allocate(), skipping any number that some document already carries.

    A hit means the counter fell behind the stored documents (restored
    backup, manual edit); the counter simply moves past it. After `attempts`
    hits in a row the caller gets DuplicateDocumentNumber and nothing is saved.
    """
    tried = []
    for _ in range(attempts):
        number = allocate(document_class, fiscal_year, prefix=prefix)
        if not number_exists(number):
            return number
        tried.append(number)

    raise DuplicateDocumentNumber(
        "Could not allocate an unused document number",
        details={"document_class": str(document_class), "fiscal_year": fiscal_year, "tried": tried},
    )
