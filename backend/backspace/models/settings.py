from __future__ import annotations

from ..extensions import db
from backspace.time_utils import to_utc_z


class AppSetting(db.Model):
    """
    Single JSON document holding business settings (currency, tax, discount,
    invoice due days, debt limit). Read through settings_service only.
    """
    __tablename__ = "app_settings"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    value_json = db.Column(db.JSON, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "value_json": self.value_json,
            "updated_at": to_utc_z(self.updated_at),
        }
