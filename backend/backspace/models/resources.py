from __future__ import annotations

from ..extensions import db
from backspace.time_utils import to_utc_z


class Resource(db.Model):
    """
    A bookable seat, desk or room billed by the hour.

    is_available is False exactly while one ActiveSession references the
    resource. It is only flipped through conditional UPDATEs in session_service.
    """
    __tablename__ = "resources"
    __table_args__ = (
        db.CheckConstraint("rate_per_hour >= 0", name="ck_resources_rate"),
        db.CheckConstraint("max_price >= 0", name="ck_resources_max_price"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    resource_type = db.Column(db.String(32), nullable=False)  # seat, desk, room

    # Piasters per hour
    rate_per_hour = db.Column(db.Integer, nullable=False, default=0)
    # Daily cap in piasters (0 = no cap)
    max_price = db.Column(db.Integer, nullable=False, default=0)

    is_available = db.Column(db.Boolean, nullable=False, default=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<Resource id={self.id} name={self.name!r} available={self.is_available}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "resource_type": self.resource_type,
            "rate_per_hour": self.rate_per_hour,
            "max_price": self.max_price,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
        }
