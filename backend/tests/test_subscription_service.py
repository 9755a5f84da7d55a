from datetime import timedelta

import pytest

from backspace.extensions import db
from backspace.models import Customer, Invoice, OperationRecord, Subscription
from backspace.services import session_service, subscription_service
from backspace.services.errors import InvalidAmount, InvalidPlan, SubscriptionEnded, SubscriptionNotFound


def test_create_subscription_bills_and_sets_type(customer, now):
    sub = subscription_service.create_subscription(customer.id, "weekly", 20000, now=now)

    assert sub.status == "active"
    assert sub.end_date - sub.start_date == timedelta(days=7)

    invoice = db.session.get(Invoice, sub.invoice_id)
    assert invoice.invoice_number == "SUB-0001"
    assert invoice.total == 20000
    assert invoice.status == "unpaid"
    assert invoice.lines[0].kind == "subscription"

    db.session.expire_all()
    refreshed = db.session.get(Customer, customer.id)
    assert refreshed.customer_type == "weekly"
    assert refreshed.balance == -20000


@pytest.mark.parametrize("plan,days", [("half-monthly", 15), ("monthly", 30)])
def test_plan_lengths(customer, now, plan, days):
    sub = subscription_service.create_subscription(customer.id, plan, 0, now=now)
    assert sub.end_date == now + timedelta(days=days)


def test_invalid_plan_and_price(customer, now):
    with pytest.raises(InvalidPlan):
        subscription_service.create_subscription(customer.id, "yearly", 100, now=now)
    with pytest.raises(InvalidAmount):
        subscription_service.create_subscription(customer.id, "weekly", -1, now=now)


def test_new_subscription_replaces_active_one(customer, now):
    first = subscription_service.create_subscription(customer.id, "weekly", 100, now=now)
    second = subscription_service.create_subscription(customer.id, "monthly", 300, now=now)

    db.session.expire_all()
    assert db.session.get(Subscription, first.id).status == "cancelled"
    assert db.session.get(Subscription, second.id).status == "active"
    assert db.session.get(Customer, customer.id).customer_type == "monthly"


def test_cancel_reverts_customer_to_visitor(customer, now):
    sub = subscription_service.create_subscription(customer.id, "weekly", 100, now=now)
    cancelled = subscription_service.cancel_subscription(sub.id, now=now)

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_at == now
    db.session.expire_all()
    assert db.session.get(Customer, customer.id).customer_type == "visitor"


def test_cancel_unknown_subscription(db_session, now):
    with pytest.raises(SubscriptionNotFound):
        subscription_service.cancel_subscription(999, now=now)


def test_expire_subscriptions(make_customer, now):
    old = make_customer(name="Old", phone="0101")
    fresh = make_customer(name="Fresh", phone="0102")
    subscription_service.create_subscription(old.id, "weekly", 0, start_date=now - timedelta(days=8), now=now)
    subscription_service.create_subscription(fresh.id, "weekly", 0, now=now)

    assert subscription_service.expire_subscriptions(now=now) == 1
    assert subscription_service.expire_subscriptions(now=now) == 0

    db.session.expire_all()
    assert db.session.get(Customer, old.id).customer_type == "visitor"
    assert db.session.get(Customer, fresh.id).customer_type == "weekly"
    assert subscription_service.has_active_subscription(fresh.id, now)
    assert not subscription_service.has_active_subscription(old.id, now)


def test_subscription_status_fixed_at_session_start(customer, resource, now):
    sub = subscription_service.create_subscription(customer.id, "weekly", 0, now=now)
    session = session_service.start_session(customer.id, resource.id, now=now)
    subscription_service.cancel_subscription(sub.id, now=now + timedelta(minutes=5))

    invoice = session_service.end_session(session.id, now=now + timedelta(hours=1))
    assert invoice.total == 0
    assert invoice.status == "paid"


def test_reactivate_restores_plan_and_cancels_other_active(customer, now):
    weekly = subscription_service.create_subscription(customer.id, "weekly", 100, now=now)
    monthly = subscription_service.create_subscription(customer.id, "monthly", 300, now=now)

    later = now + timedelta(days=1)
    reactivated = subscription_service.reactivate_subscription(weekly.id, now=later)

    assert reactivated.status == "active"
    assert reactivated.cancelled_at is None
    db.session.expire_all()
    replaced = db.session.get(Subscription, monthly.id)
    assert replaced.status == "cancelled"
    assert replaced.cancelled_at == later
    assert db.session.get(Customer, customer.id).customer_type == "weekly"
    assert subscription_service.has_active_subscription(customer.id, later)

    # no second invoice for the same period
    assert db.session.query(Invoice).count() == 2
    ops = db.session.query(OperationRecord).filter_by(operation_type="subscription_reactivated").all()
    assert len(ops) == 1
    assert ops[0].customer_id == customer.id


def test_reactivate_after_cancel(customer, now):
    sub = subscription_service.create_subscription(customer.id, "weekly", 100, now=now)
    subscription_service.cancel_subscription(sub.id, now=now)
    db.session.expire_all()
    assert db.session.get(Customer, customer.id).customer_type == "visitor"

    subscription_service.reactivate_subscription(sub.id, now=now + timedelta(hours=2))

    db.session.expire_all()
    assert db.session.get(Subscription, sub.id).status == "active"
    assert db.session.get(Customer, customer.id).customer_type == "weekly"


def test_reactivate_active_subscription_is_noop(customer, now):
    sub = subscription_service.create_subscription(customer.id, "weekly", 100, now=now)
    again = subscription_service.reactivate_subscription(sub.id, now=now)

    assert again.status == "active"
    assert db.session.query(OperationRecord).filter_by(operation_type="subscription_reactivated").count() == 0


def test_reactivate_rejects_ended_period(customer, now):
    sub = subscription_service.create_subscription(customer.id, "weekly", 100, now=now)
    subscription_service.cancel_subscription(sub.id, now=now)

    with pytest.raises(SubscriptionEnded):
        subscription_service.reactivate_subscription(sub.id, now=now + timedelta(days=7))

    db.session.expire_all()
    assert db.session.get(Subscription, sub.id).status == "cancelled"
    assert db.session.get(Customer, customer.id).customer_type == "visitor"


def test_reactivate_unknown_subscription(db_session, now):
    with pytest.raises(SubscriptionNotFound):
        subscription_service.reactivate_subscription(999, now=now)
