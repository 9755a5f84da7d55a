from __future__ import annotations

from ..extensions import db
from backspace.time_utils import to_utc_z


class ActiveSession(db.Model):
    """
    An open, in-progress billing period for one customer on one resource.

    WHY: The row exists only while the session is open. Ending a session
    turns it into an Invoice and deletes it in the same transaction.

    No cost is ever stored here; cost is recomputed from started_at and the
    resource snapshot every time (billing_service.compute_session_charge).
    """
    __tablename__ = "active_sessions"
    __table_args__ = (
        # One open session per resource, enforced by the store itself
        db.UniqueConstraint("resource_id", name="uq_active_sessions_resource"),
        db.CheckConstraint("resource_rate >= 0", name="ck_active_sessions_rate"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    resource_id = db.Column(db.Integer, db.ForeignKey("resources.id"), nullable=False)

    # Snapshots taken at start
    customer_name = db.Column(db.String(255), nullable=False)
    resource_name = db.Column(db.String(120), nullable=False)
    resource_rate = db.Column(db.Integer, nullable=False, default=0)
    resource_max_price = db.Column(db.Integer, nullable=False, default=0)

    started_at = db.Column(db.DateTime(timezone=True), nullable=False)
    is_subscribed = db.Column(db.Boolean, nullable=False, default=False)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    customer = db.relationship("Customer")
    resource = db.relationship("Resource")
    consumptions = db.relationship(
        "InventoryConsumption",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="(InventoryConsumption.added_at, InventoryConsumption.id)",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def inventory_total(self) -> int:
        return sum(c.line_total for c in self.consumptions)

    def __repr__(self) -> str:
        return f"<ActiveSession id={self.id} customer_id={self.customer_id} resource_id={self.resource_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "resource_id": self.resource_id,
            "resource_name": self.resource_name,
            "resource_rate": self.resource_rate,
            "resource_max_price": self.resource_max_price,
            "started_at": to_utc_z(self.started_at),
            "is_subscribed": self.is_subscribed,
            "inventory_consumptions": [c.to_dict() for c in self.consumptions],
            "inventory_total": self.inventory_total,
        }


class InventoryConsumption(db.Model):
    """
    Items added to an open session.

    price is a snapshot of the catalog price when the line was created and is
    never updated afterwards.
    """
    __tablename__ = "inventory_consumptions"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_inventory_consumptions_quantity"),
        db.CheckConstraint("price >= 0", name="ck_inventory_consumptions_price"),
        db.Index("ix_inventory_consumptions_session_item", "session_id", "inventory_item_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("active_sessions.id"), nullable=False, index=True)
    inventory_item_id = db.Column(db.Integer, db.ForeignKey("inventory_items.id"), nullable=False, index=True)

    item_name = db.Column(db.String(255), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    price = db.Column(db.Integer, nullable=False)
    added_at = db.Column(db.DateTime(timezone=True), nullable=False)

    session = db.relationship("ActiveSession", back_populates="consumptions")

    @property
    def line_total(self) -> int:
        return self.quantity * self.price

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "inventory_item_id": self.inventory_item_id,
            "item_name": self.item_name,
            "quantity": self.quantity,
            "price": self.price,
            "line_total": self.line_total,
            "added_at": to_utc_z(self.added_at),
        }
