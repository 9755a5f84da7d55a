from datetime import timedelta

import pytest

from backspace.extensions import db
from backspace.models import InventoryConsumption, InventoryItem
from backspace.services import consumption_service, inventory_service, session_service
from backspace.services.errors import (
    ConsumptionNotFound,
    InvalidQuantity,
    InventoryItemNotFound,
    OutOfStock,
    SessionNotFound,
)


@pytest.fixture
def open_session(customer, resource, now):
    return session_service.start_session(customer.id, resource.id, now=now)


def _stock(item_id):
    db.session.expire_all()
    return db.session.get(InventoryItem, item_id).quantity


def _reserved(item_id):
    return sum(
        c.quantity
        for c in db.session.query(InventoryConsumption).filter_by(inventory_item_id=item_id).all()
    )


def test_add_item_reserves_stock(open_session, make_item, now):
    tea = make_item(quantity=10)
    line = consumption_service.add_item(open_session.id, tea.id, 3, now=now)

    assert line.quantity == 3
    assert line.price == 500
    assert _stock(tea.id) == 7


def test_add_then_remove_restores_stock_exactly(open_session, make_item, now):
    tea = make_item(quantity=10)
    line = consumption_service.add_item(open_session.id, tea.id, 4, now=now)
    consumption_service.remove_item(open_session.id, line.id)

    assert _stock(tea.id) == 10
    assert db.session.query(InventoryConsumption).count() == 0


def test_reservations_plus_stock_stay_constant(open_session, make_item, now):
    tea = make_item(quantity=10)
    line = consumption_service.add_item(open_session.id, tea.id, 2, now=now)
    assert _stock(tea.id) + _reserved(tea.id) == 10

    consumption_service.update_item(open_session.id, line.id, 6)
    assert _stock(tea.id) == 4
    assert _stock(tea.id) + _reserved(tea.id) == 10

    consumption_service.update_item(open_session.id, line.id, 1)
    assert _stock(tea.id) == 9
    assert _stock(tea.id) + _reserved(tea.id) == 10


def test_same_item_same_price_merges_into_one_line(open_session, make_item, now):
    tea = make_item(quantity=10)
    first = consumption_service.add_item(open_session.id, tea.id, 1, now=now)
    second = consumption_service.add_item(open_session.id, tea.id, 2, now=now + timedelta(minutes=5))

    assert first.id == second.id
    assert second.quantity == 3


def test_catalog_price_change_starts_new_line(open_session, make_item, now):
    tea = make_item(quantity=10, price=500)
    first = consumption_service.add_item(open_session.id, tea.id, 1, now=now)
    inventory_service.update_item_details(tea.id, {"price": 700})
    second = consumption_service.add_item(open_session.id, tea.id, 1, now=now + timedelta(minutes=1))

    assert first.id != second.id
    db.session.expire_all()
    prices = sorted(c.price for c in db.session.query(InventoryConsumption).all())
    assert prices == [500, 700]


def test_out_of_stock_leaves_everything_unchanged(open_session, make_item, now):
    tea = make_item(quantity=2)
    with pytest.raises(OutOfStock):
        consumption_service.add_item(open_session.id, tea.id, 3, now=now)

    assert _stock(tea.id) == 2
    assert db.session.query(InventoryConsumption).count() == 0


def test_update_beyond_stock_fails(open_session, make_item, now):
    tea = make_item(quantity=3)
    line = consumption_service.add_item(open_session.id, tea.id, 2, now=now)
    with pytest.raises(OutOfStock):
        consumption_service.update_item(open_session.id, line.id, 5)
    assert _stock(tea.id) == 1


@pytest.mark.parametrize("quantity", [0, -1])
def test_add_rejects_non_positive_quantity(open_session, make_item, now, quantity):
    tea = make_item()
    with pytest.raises(InvalidQuantity):
        consumption_service.add_item(open_session.id, tea.id, quantity, now=now)


def test_update_to_zero_removes_line(open_session, make_item, now):
    tea = make_item(quantity=5)
    line = consumption_service.add_item(open_session.id, tea.id, 2, now=now)

    assert consumption_service.update_item(open_session.id, line.id, 0) is None
    assert _stock(tea.id) == 5
    with pytest.raises(ConsumptionNotFound):
        consumption_service.remove_item(open_session.id, line.id)


def test_update_rejects_negative_quantity(open_session, make_item, now):
    tea = make_item()
    line = consumption_service.add_item(open_session.id, tea.id, 1, now=now)
    with pytest.raises(InvalidQuantity):
        consumption_service.update_item(open_session.id, line.id, -2)


def test_unknown_references(open_session, make_item, now):
    tea = make_item()
    with pytest.raises(SessionNotFound):
        consumption_service.add_item(999999, tea.id, 1, now=now)
    with pytest.raises(InventoryItemNotFound):
        consumption_service.add_item(open_session.id, 999999, 1, now=now)


def test_adjust_quantity_never_goes_negative(make_item):
    tea = make_item(quantity=3)
    assert inventory_service.adjust_quantity(tea.id, 5).quantity == 8
    with pytest.raises(OutOfStock):
        inventory_service.adjust_quantity(tea.id, -9)
    assert _stock(tea.id) == 8
