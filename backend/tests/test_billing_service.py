from datetime import datetime, timedelta
from types import SimpleNamespace

from backspace.services.billing_service import (
    build_invoice_lines,
    compute_session_charge,
    format_duration,
    session_cost,
)
from backspace.services.settings_service import BillingSettings


START = datetime(2024, 5, 15, 10, 0, 0)


def _session(rate=6000, is_subscribed=False, items=(), max_price=0):
    return SimpleNamespace(
        started_at=START,
        resource_rate=rate,
        resource_max_price=max_price,
        resource_name="Desk 1",
        is_subscribed=is_subscribed,
        consumptions=[
            SimpleNamespace(inventory_item_id=i, item_name=name, quantity=qty, price=price)
            for i, (name, qty, price) in enumerate(items, start=1)
        ],
    )


def test_session_cost_floors_partial_piasters():
    assert session_cost(59, 100) == 98


def test_subscribed_session_costs_nothing():
    charge = compute_session_charge(_session(is_subscribed=True), START + timedelta(hours=5))
    assert charge.session_cost == 0
    assert charge.total == 0


def test_half_hour_with_two_items():
    session = _session(rate=6000, items=[("Tea", 2, 500)])
    charge = compute_session_charge(session, START + timedelta(minutes=30))

    assert charge.duration_minutes == 30
    assert charge.session_cost == 3000
    assert charge.inventory_subtotal == 1000
    assert charge.subtotal == 4000
    assert charge.total == 4000


def test_subscribed_session_still_pays_for_items():
    session = _session(is_subscribed=True, items=[("Water", 3, 200)])
    charge = compute_session_charge(session, START + timedelta(hours=2))
    assert charge.session_cost == 0
    assert charge.total == 600


def test_daily_cap_limits_session_cost():
    session = _session(rate=6000, max_price=20000)
    charge = compute_session_charge(session, START + timedelta(hours=8))
    assert charge.session_cost == 20000


def test_discount_then_tax():
    settings = BillingSettings.from_dict({
        "discount": {"enabled": True, "value": 10},
        "tax": {"enabled": True, "rate": 14},
    })
    session = _session(rate=6000, items=[("Tea", 2, 500)])
    charge = compute_session_charge(session, START + timedelta(minutes=30), settings)

    assert charge.discount == 400
    assert charge.tax == 504
    assert charge.total == 4000 - 400 + 504


def test_clock_skew_never_goes_negative():
    charge = compute_session_charge(_session(), START - timedelta(minutes=10))
    assert charge.duration_minutes == 0
    assert charge.total == 0


def test_charge_is_pure_for_same_inputs():
    session = _session(items=[("Tea", 1, 500)])
    now = START + timedelta(minutes=47)
    first = compute_session_charge(session, now)
    second = compute_session_charge(session, now)
    assert first == second
    assert session.consumptions[0].quantity == 1


def test_invoice_lines_sum_to_total():
    settings = BillingSettings.from_dict({
        "discount": {"enabled": True, "value": 5, "label": "Loyalty"},
        "tax": {"enabled": True, "rate": 14},
    })
    session = _session(rate=4500, items=[("Tea", 2, 500), ("Chips", 1, 750)])
    charge = compute_session_charge(session, START + timedelta(minutes=95), settings)
    lines = build_invoice_lines(session, charge, settings)

    assert sum(line["amount"] for line in lines) == charge.total
    assert [line["kind"] for line in lines] == ["session", "inventory", "inventory", "discount", "tax"]
    assert lines[0]["description"] == "Session at Desk 1 (1h 35m)"
    assert lines[3]["description"] == "Loyalty"
    assert lines[3]["amount"] < 0


def test_format_duration():
    assert format_duration(0) == "0h 00m"
    assert format_duration(125) == "2h 05m"
