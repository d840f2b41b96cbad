from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class AuditLogEntry(db.Model):
    """
    Append-only record of a successful state change.

    previous_values / new_values hold JSON text snapshots (kept small).
    """
    __tablename__ = "audit_log"
    __table_args__ = (
        db.Index("ix_audit_log_entity", "entity_type", "entity_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    action = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(32), nullable=False)
    entity_id = db.Column(db.String(96), nullable=False)

    actor_user_id = db.Column(db.Integer, nullable=True, index=True)
    actor_name = db.Column(db.String(100), nullable=True)
    actor_role = db.Column(db.String(32), nullable=True)

    previous_values = db.Column(db.Text, nullable=True)
    new_values = db.Column(db.Text, nullable=True)
    details = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "action": self.action,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "actor_name": self.actor_name,
            "actor_role": self.actor_role,
            "previous_values": self.previous_values,
            "new_values": self.new_values,
            "details": self.details,
            "created_at": to_utc_z(self.created_at),
        }
