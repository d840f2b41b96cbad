from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class _PartyColumns:
    name = db.Column(db.String(100), nullable=False)
    phone = db.Column(db.String(15), nullable=True)
    gstin = db.Column(db.String(15), nullable=True, index=True)
    state_code = db.Column(db.String(2), nullable=True)
    address = db.Column(db.String(500), nullable=True)
    email = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def _party_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "gstin": self.gstin,
            "state_code": self.state_code,
            "address": self.address,
            "email": self.email,
            "created_at": to_utc_z(self.created_at),
        }


class Customer(_PartyColumns, db.Model):
    """Buyer. Walk-in customers have no GSTIN and are always billed intrastate."""
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    is_walk_in = db.Column(db.Boolean, nullable=False, default=False)

    def to_dict(self) -> dict:
        data = self._party_dict()
        data["is_walk_in"] = self.is_walk_in
        return data


class Supplier(_PartyColumns, db.Model):
    __tablename__ = "suppliers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    def to_dict(self) -> dict:
        return self._party_dict()
