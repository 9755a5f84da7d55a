from __future__ import annotations

from ..extensions import db
from backspace.time_utils import to_utc_z


INVENTORY_CATEGORIES = ("beverage", "snack", "other")


class InventoryItem(db.Model):
    """
    Catalog item with stock on hand.

    quantity only moves through atomic deltas in inventory_service
    (session reservations/releases and explicit adjustments). The CHECK
    constraint keeps the store itself from ever holding negative stock.
    """
    __tablename__ = "inventory_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_inventory_items_quantity"),
        db.CheckConstraint("min_stock >= 0", name="ck_inventory_items_min_stock"),
        db.CheckConstraint("price >= 0", name="ck_inventory_items_price"),
        db.Index("ix_inventory_items_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, default="other")

    # Catalog price in piasters
    price = db.Column(db.Integer, nullable=False, default=0)

    quantity = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<InventoryItem id={self.id} name={self.name!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": self.price,
            "quantity": self.quantity,
            "min_stock": self.min_stock,
            "created_at": to_utc_z(self.created_at),
        }
