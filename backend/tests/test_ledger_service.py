from datetime import timedelta

import pytest

from backspace.extensions import db
from backspace.services import balance_service, payment_service
from backspace.services.ledger_service import (
    OP_CUSTOMER_NEW,
    OP_PAYMENT_RECEIVED,
    OP_SESSION_START,
    append_operation,
    operation_history,
    recent_activity,
)


def _log(operation_type, occurred_at, customer_id=None, payload=None):
    record = append_operation(
        operation_type=operation_type,
        description=f"{operation_type} at {occurred_at.isoformat()}",
        customer_id=customer_id,
        occurred_at=occurred_at,
        payload=payload,
    )
    db.session.commit()
    return record


def test_unknown_operation_type_is_rejected(db_session, now):
    with pytest.raises(ValueError):
        append_operation(operation_type="coffee_spilled", description="oops", occurred_at=now)


def test_history_filters_by_type(db_session, now):
    _log(OP_SESSION_START, now)
    _log(OP_PAYMENT_RECEIVED, now + timedelta(minutes=1))
    _log(OP_SESSION_START, now + timedelta(minutes=2))

    rows = operation_history(operation_type=OP_SESSION_START)
    assert [r.operation_type for r in rows] == [OP_SESSION_START, OP_SESSION_START]


def test_history_filters_by_customer(db_session, now):
    mine = _log(OP_SESSION_START, now, customer_id=1)
    _log(OP_SESSION_START, now, customer_id=2)
    _log(OP_SESSION_START, now)

    assert [r.id for r in operation_history(customer_id=1)] == [mine.id]


def test_history_range_is_inclusive_on_both_ends(db_session, now):
    before = _log(OP_SESSION_START, now - timedelta(seconds=1))
    at_start = _log(OP_SESSION_START, now)
    inside = _log(OP_SESSION_START, now + timedelta(minutes=30))
    at_end = _log(OP_SESSION_START, now + timedelta(hours=1))
    after = _log(OP_SESSION_START, now + timedelta(hours=1, seconds=1))

    rows = operation_history(start=now, end=now + timedelta(hours=1))
    assert [r.id for r in rows] == [at_end.id, inside.id, at_start.id]

    assert [r.id for r in operation_history(start=now + timedelta(hours=1))] == [after.id, at_end.id]
    assert [r.id for r in operation_history(end=now)] == [at_start.id, before.id]


def test_history_limit_keeps_newest(db_session, now):
    records = [_log(OP_CUSTOMER_NEW, now + timedelta(minutes=i)) for i in range(5)]

    rows = operation_history(limit=2)
    assert [r.id for r in rows] == [records[4].id, records[3].id]


def test_same_timestamp_orders_by_id(db_session, now):
    first = _log(OP_SESSION_START, now)
    second = _log(OP_SESSION_START, now)

    assert [r.id for r in recent_activity(limit=10)] == [second.id, first.id]


def test_payload_round_trips_through_to_dict(db_session, now):
    record = _log(OP_SESSION_START, now, payload={"minutes": 90, "total": 9000})
    bare = _log(OP_SESSION_START, now)
    db.session.expire_all()

    assert record.to_dict()["payload"] == {"minutes": 90, "total": 9000}
    assert bare.to_dict()["payload"] is None


def test_payment_entry_carries_amount_and_method(customer, now):
    invoice = balance_service.withdraw_balance(customer.id, 5000, now=now)
    payment_service.record_payment(invoice.id, 2000, "cash", now=now + timedelta(minutes=5))

    entry = operation_history(operation_type=OP_PAYMENT_RECEIVED)[0]
    assert entry.description.startswith("Payment of 20.00 (cash)")
    assert entry.to_dict()["payload"] == {"amount": 2000, "method": "cash", "bulk_reference": None}
    assert entry.invoice_id == invoice.id
