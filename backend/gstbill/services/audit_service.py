# Overview: Service-layer operations for the audit log; written after the audited change commits.

"""
Audit Writer

record() is called only after the primary operation has committed, and
writes in its own transaction. A failed audit write is logged as a warning
and never undoes the operation it describes.

Audit rows are append-only; nothing in the application updates or deletes
them.
"""

from __future__ import annotations

import csv
import io
import json
from datetime import date, datetime, time, timedelta

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import StorageFailure
from ..extensions import db
from ..models import AuditLogEntry
from .concurrency import atomic

# Keep snapshots small; they are for humans, not for replay
MAX_SNAPSHOT_CHARS = 4000

CSV_COLUMNS = (
    "id",
    "created_at",
    "action",
    "entity_type",
    "entity_id",
    "actor_name",
    "actor_role",
    "details",
    "previous_values",
    "new_values",
)


def _snapshot(values) -> str | None:
    if values is None:
        return None
    text = json.dumps(values, default=str, sort_keys=True)
    if len(text) > MAX_SNAPSHOT_CHARS:
        text = text[:MAX_SNAPSHOT_CHARS]
    return text


def record(
    action: str,
    entity_type: str,
    entity_id,
    *,
    actor=None,
    previous_values: dict | None = None,
    new_values: dict | None = None,
    details: str | None = None,
) -> AuditLogEntry | None:
    """
    Append one audit row. Returns None (and logs) if the write failed.
    """
    user = getattr(actor, "user", actor)
    try:
        with atomic():
            entry = AuditLogEntry(
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id),
                actor_user_id=getattr(user, "id", None),
                actor_name=getattr(user, "display_name", None) or getattr(user, "username", None),
                actor_role=getattr(user, "role", None),
                previous_values=_snapshot(previous_values),
                new_values=_snapshot(new_values),
                details=(details or "")[:255] or None,
            )
            db.session.add(entry)
        return entry
    except (StorageFailure, SQLAlchemyError) as exc:
        db.session.rollback()
        current_app.logger.warning(
            "Audit write failed for %s %s:%s (%s)",
            action, entity_type, entity_id, exc,
        )
        return None


def list_entries(
    *,
    action: str | None = None,
    entity_type: str | None = None,
    entity_id: str | None = None,
    actor_user_id: int | None = None,
    from_date: date | None = None,
    to_date: date | None = None,
    limit: int = 200,
    offset: int = 0,
) -> list[AuditLogEntry]:
    """Newest first. Date bounds are inclusive whole days."""
    query = db.session.query(AuditLogEntry)
    if action:
        query = query.filter(AuditLogEntry.action == action)
    if entity_type:
        query = query.filter(AuditLogEntry.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLogEntry.entity_id == str(entity_id))
    if actor_user_id is not None:
        query = query.filter(AuditLogEntry.actor_user_id == actor_user_id)
    if from_date:
        query = query.filter(AuditLogEntry.created_at >= datetime.combine(from_date, time.min))
    if to_date:
        query = query.filter(AuditLogEntry.created_at < datetime.combine(to_date + timedelta(days=1), time.min))

    return (
        query.order_by(AuditLogEntry.id.desc())
        .offset(max(offset, 0))
        .limit(min(max(limit, 1), 1000))
        .all()
    )


def export_csv(entries) -> str:
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=CSV_COLUMNS, extrasaction="ignore")
    writer.writeheader()
    for entry in entries:
        writer.writerow(entry.to_dict())
    return buffer.getvalue()
