# Overview: Service-layer operations for items consumed during an open session.

"""
Inventory Consumption Ledger

WHY: Items a customer takes during a session are billed at session end, but
stock must leave the shelf the moment they are added. Every change to a
session's item list moves the same number of units between the shelf and the
session, in one transaction.

DESIGN PRINCIPLES:
- Snapshot pricing: a consumption keeps the catalog price of the moment it
  was added. Catalog price changes never reprice an open session.
- One line per (catalog item, snapshot price). Adding an item already on the
  session at the same price grows that line; a new price starts a new line.
- Stock moves only through inventory_service.reserve_stock/release_stock
  (single conditional UPDATEs).
"""

from datetime import datetime

from ..extensions import db
from ..models import ActiveSession, InventoryConsumption, InventoryItem
from backspace.time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .errors import (
    ConsumptionNotFound,
    InvalidQuantity,
    InventoryItemNotFound,
    SessionNotFound,
)
from .inventory_service import release_stock, reserve_stock
from .ledger_service import OP_INVENTORY_ADD, append_operation


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _locked_session(session_id: int) -> ActiveSession:
    session = lock_for_update(db.session.query(ActiveSession).filter_by(id=session_id)).first()
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found or already ended")
    return session


def _session_line(session_id: int, consumption_id: int) -> InventoryConsumption:
    line = (
        lock_for_update(db.session.query(InventoryConsumption))
        .filter_by(id=consumption_id, session_id=session_id)
        .first()
    )
    if line is None:
        raise ConsumptionNotFound(f"Item {consumption_id} is not on session {session_id}")
    return line


def add_item(session_id: int, inventory_item_id: int, quantity: int, now: datetime | None = None) -> InventoryConsumption:
    """
    Add `quantity` units of a catalog item to an open session.

    Args:
        session_id: Open session receiving the items
        inventory_item_id: Catalog item
        quantity: Units to add (> 0)
        now: Business time of the addition (defaults to utcnow)

    Returns:
        The consumption line holding the units (new or merged)

    Raises:
        InvalidQuantity: quantity <= 0
        SessionNotFound, InventoryItemNotFound
        OutOfStock: quantity exceeds stock on hand
    """
    if not _is_int(quantity) or quantity <= 0:
        raise InvalidQuantity("Quantity must be a positive integer")

    def _op():
        now_ts = now or utcnow()
        session = _locked_session(session_id)

        item = db.session.query(InventoryItem).filter_by(id=inventory_item_id).first()
        if item is None:
            raise InventoryItemNotFound(f"Inventory item {inventory_item_id} not found")
        price = item.price
        name = item.name

        reserve_stock(inventory_item_id, quantity)

        line = (
            db.session.query(InventoryConsumption)
            .filter_by(session_id=session.id, inventory_item_id=inventory_item_id, price=price)
            .first()
        )
        if line is not None:
            line.quantity += quantity
        else:
            line = InventoryConsumption(
                session_id=session.id,
                inventory_item_id=inventory_item_id,
                item_name=name,
                quantity=quantity,
                price=price,
                added_at=now_ts,
            )
            db.session.add(line)
        db.session.flush()

        append_operation(
            operation_type=OP_INVENTORY_ADD,
            description=f"Added {quantity} x {name} to {session.resource_name} session",
            customer_id=session.customer_id,
            resource_id=session.resource_id,
            session_ref=session.id,
            occurred_at=now_ts,
        )

        db.session.commit()
        return line

    return run_with_retry(_op)


def update_item(session_id: int, consumption_id: int, new_quantity: int) -> InventoryConsumption | None:
    """
    Set a consumption line to `new_quantity` units.

    The delta against the current quantity is reserved or released. A new
    quantity of 0 removes the line and returns None.
    """
    if not _is_int(new_quantity) or new_quantity < 0:
        raise InvalidQuantity("Quantity must be a non-negative integer")
    if new_quantity == 0:
        remove_item(session_id, consumption_id)
        return None

    def _op():
        _locked_session(session_id)
        line = _session_line(session_id, consumption_id)

        delta = new_quantity - line.quantity
        if delta > 0:
            reserve_stock(line.inventory_item_id, delta)
        elif delta < 0:
            release_stock(line.inventory_item_id, -delta)

        line.quantity = new_quantity
        db.session.commit()
        return line

    return run_with_retry(_op)


def remove_item(session_id: int, consumption_id: int) -> None:
    """Drop a consumption line and put all of its units back on the shelf."""
    def _op():
        session = _locked_session(session_id)
        line = _session_line(session_id, consumption_id)

        release_stock(line.inventory_item_id, line.quantity)
        session.consumptions.remove(line)
        db.session.delete(line)
        db.session.commit()

    run_with_retry(_op)
