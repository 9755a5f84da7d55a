# Overview: Service-layer operations for inventory stock; encapsulates business logic and database work.

# backend/backspace/services/inventory_service.py

from sqlalchemy import update

from ..extensions import db
from ..models import InventoryItem
from ..validation import (
    INVENTORY_ITEM_POLICY,
    INVENTORY_ITEM_UPDATE_POLICY,
    enforce_rules_inventory_item,
    validate_payload,
)
from .concurrency import run_with_retry
from .errors import InvalidQuantity, InventoryItemNotFound, OutOfStock
"""
Inventory Stock Invariants (authoritative)

- InventoryItem.quantity is stock on hand, never negative (DB CHECK as backstop).
- quantity only changes through the atomic delta helpers below: session
  reservations/releases and explicit adjustments. No caller ever reads a
  quantity, computes a new one and writes it back.
- Each delta is a single conditional UPDATE, so whatever serializes writes
  in the store (SQLite's writer lock, row locks elsewhere) also serializes
  the stock check.
- For every item X: sum(open session reservations of X) + X.quantity stays
  constant across reserve/release; only adjust_quantity changes it.
"""


def get_item(item_id: int) -> InventoryItem:
    item = db.session.query(InventoryItem).filter_by(id=item_id).first()
    if item is None:
        raise InventoryItemNotFound(f"Inventory item {item_id} not found")
    return item


def list_items() -> list[InventoryItem]:
    return db.session.query(InventoryItem).order_by(InventoryItem.name.asc()).all()


def create_item(payload: dict) -> InventoryItem:
    patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_ITEM_POLICY, partial=False)
    enforce_rules_inventory_item(patch)

    item = InventoryItem(**patch)
    db.session.add(item)
    db.session.commit()
    return item


def update_item_details(item_id: int, payload: dict) -> InventoryItem:
    """Catalog edits (name, category, price, min_stock). Open-session snapshots keep their price."""
    patch = validate_payload(model=InventoryItem, payload=payload, policy=INVENTORY_ITEM_UPDATE_POLICY, partial=True)
    enforce_rules_inventory_item(patch)

    def _op():
        item = get_item(item_id)
        for key, value in patch.items():
            setattr(item, key, value)
        db.session.commit()
        return item

    return run_with_retry(_op)


def _reload(item_id: int) -> InventoryItem:
    return db.session.query(InventoryItem).populate_existing().filter_by(id=item_id).first()


def reserve_stock(item_id: int, quantity: int) -> InventoryItem:
    """
    Take `quantity` units off the shelf inside the caller's transaction.

    Raises OutOfStock when fewer than `quantity` units are on hand.
    """
    if quantity <= 0:
        raise InvalidQuantity("Quantity must be positive")

    stmt = (
        update(InventoryItem)
        .where(InventoryItem.id == item_id, InventoryItem.quantity >= quantity)
        .values(quantity=InventoryItem.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        item = _reload(item_id)
        if item is None:
            raise InventoryItemNotFound(f"Inventory item {item_id} not found")
        raise OutOfStock(
            f"Insufficient stock for {item.name}: only {item.quantity} available",
            details={"inventory_item_id": item_id, "requested": quantity, "available": item.quantity},
        )
    return _reload(item_id)


def release_stock(item_id: int, quantity: int) -> InventoryItem:
    """Put `quantity` units back on the shelf inside the caller's transaction."""
    if quantity <= 0:
        raise InvalidQuantity("Quantity must be positive")

    stmt = (
        update(InventoryItem)
        .where(InventoryItem.id == item_id)
        .values(quantity=InventoryItem.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        raise InventoryItemNotFound(f"Inventory item {item_id} not found")
    return _reload(item_id)


def adjust_quantity(item_id: int, delta: int) -> InventoryItem:
    """
    Explicit stock adjustment (restock, shrinkage, count correction).

    A negative delta larger than stock on hand fails with OutOfStock and
    changes nothing.
    """
    if not isinstance(delta, int) or isinstance(delta, bool) or delta == 0:
        raise InvalidQuantity("delta must be a non-zero integer")

    def _op():
        if delta > 0:
            item = release_stock(item_id, delta)
        else:
            item = reserve_stock(item_id, -delta)
        db.session.commit()
        return item

    return run_with_retry(_op)
