from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class BusinessSetting(db.Model):
    """
    Key-value business settings editable at runtime.

    A key with no row falls back to the application config; see
    settings_service.SETTINGS_CATALOG for the supported keys.
    """
    __tablename__ = "business_settings"
    __table_args__ = (
        db.UniqueConstraint("key", name="uq_business_settings_key"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(64), nullable=False)
    value = db.Column(db.Text, nullable=True)

    updated_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self):
        return {
            "key": self.key,
            "value": self.value,
            "updated_by_user_id": self.updated_by_user_id,
            "updated_at": to_utc_z(self.updated_at),
        }
