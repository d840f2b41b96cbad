# Overview: Document lifecycle rules shared by invoices and purchases.

"""
Document Lifecycle

================================================================================
PURPOSE: Enforce Draft -> Completed -> Cancelled for invoices and purchases
================================================================================

STATE MACHINE:
    DRAFT -> COMPLETED -> CANCELLED
    DRAFT -> CANCELLED

    DRAFT:      Editable, holds a document number once saved, does NOT move stock
    COMPLETED:  Final. Stock has moved (one ledger row per line)
    CANCELLED:  Terminal. A cancelled completed document has had its stock
                movement reversed by compensating ledger rows

RULES:
1. Nothing leaves CANCELLED
2. COMPLETED never goes back to DRAFT and is never edited
3. DRAFT -> DRAFT is an edit, allowed only while the document is a draft
4. Stock moves only on the transition into COMPLETED, and back only on
   COMPLETED -> CANCELLED

================================================================================
"""

from __future__ import annotations

from ..errors import InvalidStateTransition, ValidationError
from ..models import DocumentStatus

DRAFT = DocumentStatus.DRAFT
COMPLETED = DocumentStatus.COMPLETED
CANCELLED = DocumentStatus.CANCELLED

# None stands for "no document yet"
ALLOWED_TRANSITIONS = {
    None: {DRAFT, COMPLETED},
    DRAFT: {DRAFT, COMPLETED, CANCELLED},
    COMPLETED: {CANCELLED},
    CANCELLED: set(),
}

# Statuses a save request may ask for; cancellation has its own entry point
SAVE_STATUSES = {DRAFT, COMPLETED}


def parse_status(value) -> DocumentStatus:
    """
    Coerce a request value into DocumentStatus.

    Raises ValidationError for anything outside the closed set.
    """
    if isinstance(value, DocumentStatus):
        return value
    try:
        return DocumentStatus(str(value).strip().lower())
    except ValueError:
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: "
            f"{', '.join(s.value for s in DocumentStatus)}"
        )


def can_transition(from_status: DocumentStatus | None, to_status: DocumentStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS.get(from_status, set())


def require_transition(
    from_status: DocumentStatus | None,
    to_status: DocumentStatus,
    *,
    document: str = "document",
) -> None:
    """Raise InvalidStateTransition unless from_status -> to_status is allowed."""
    if can_transition(from_status, to_status):
        return

    current = from_status.value if from_status else "new"
    if from_status == CANCELLED:
        message = f"Cannot change {document}: it is already cancelled"
    elif from_status == COMPLETED and to_status != CANCELLED:
        message = f"Cannot change {document}: completed documents cannot be edited"
    else:
        message = f"Cannot move {document} from {current} to {to_status.value}"

    raise InvalidStateTransition(
        message,
        details={"from_status": current, "to_status": to_status.value},
    )


def require_save_status(status) -> DocumentStatus:
    status = parse_status(status)
    if status not in SAVE_STATUSES:
        raise ValidationError("Use the cancel operation to cancel a document")
    return status
