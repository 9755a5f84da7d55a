# Overview: Service-layer operations for prepaid subscription plans.

"""
Subscription Plans

A customer holds at most one active subscription. Creating a new one cancels
the previous one, bills the plan on a SUB-xxxx sale invoice and sets the
customer's type to the plan name. Cancelling reverts the customer to
"visitor" once no active plan is left.

Sessions only see subscriptions through ActiveSession.is_subscribed, fixed
at session start; nothing here touches open sessions.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import update

from ..extensions import db
from ..models import Subscription
from ..models.customers import CUSTOMER_TYPE_VISITOR
from ..models.invoices import LINE_KIND_SUBSCRIPTION
from ..models.subscriptions import (
    PLAN_DAYS,
    SUBSCRIPTION_STATUS_ACTIVE,
    SUBSCRIPTION_STATUS_CANCELLED,
    SUBSCRIPTION_STATUS_EXPIRED,
)
from backspace.money import MAX_AMOUNT_PIASTERS
from backspace.time_utils import utcnow
from .balance_service import refresh_customer_balance
from .concurrency import lock_for_update, run_with_retry
from .errors import InvalidAmount, InvalidPlan, SubscriptionEnded, SubscriptionNotFound
from .invoice_service import create_invoice_record, lock_customer
from .ledger_service import (
    OP_SUBSCRIPTION_CANCELLED,
    OP_SUBSCRIPTION_NEW,
    OP_SUBSCRIPTION_REACTIVATED,
    append_operation,
)


def get_subscription(subscription_id: int) -> Subscription:
    sub = db.session.query(Subscription).filter_by(id=subscription_id).first()
    if sub is None:
        raise SubscriptionNotFound(f"Subscription {subscription_id} not found")
    return sub


def list_subscriptions(status: str | None = None, customer_id: int | None = None) -> list[Subscription]:
    query = db.session.query(Subscription)
    if status:
        query = query.filter(Subscription.status == status)
    if customer_id is not None:
        query = query.filter(Subscription.customer_id == customer_id)
    return query.order_by(Subscription.created_at.desc(), Subscription.id.desc()).all()


def has_active_subscription(customer_id: int, now: datetime | None = None) -> bool:
    now = now or utcnow()
    return (
        db.session.query(Subscription.id)
        .filter(
            Subscription.customer_id == customer_id,
            Subscription.status == SUBSCRIPTION_STATUS_ACTIVE,
            Subscription.start_date <= now,
            Subscription.end_date > now,
        )
        .first()
        is not None
    )


def create_subscription(
    customer_id: int,
    plan_type: str,
    price: int,
    start_date: datetime | None = None,
    now: datetime | None = None,
) -> Subscription:
    """
    Start a plan for a customer and bill it.

    Raises:
        InvalidPlan: plan_type is not weekly, half-monthly or monthly
        InvalidAmount: price is negative or not an integer
        CustomerNotFound
    """
    if plan_type not in PLAN_DAYS:
        raise InvalidPlan(f"Unknown plan: {plan_type}. Must be one of {', '.join(PLAN_DAYS)}")
    if not isinstance(price, int) or isinstance(price, bool) or price < 0 or price > MAX_AMOUNT_PIASTERS:
        raise InvalidAmount("Price must be a non-negative integer number of piasters")

    def _op():
        now_ts = now or utcnow()
        start = start_date or now_ts
        customer = lock_customer(customer_id)

        db.session.execute(
            update(Subscription)
            .where(
                Subscription.customer_id == customer.id,
                Subscription.status == SUBSCRIPTION_STATUS_ACTIVE,
            )
            .values(status=SUBSCRIPTION_STATUS_CANCELLED, cancelled_at=now_ts)
            .execution_options(synchronize_session=False)
        )

        invoice = create_invoice_record(
            customer=customer,
            lines=[
                {
                    "kind": LINE_KIND_SUBSCRIPTION,
                    "description": f"Subscription: {plan_type} plan",
                    "quantity": 1,
                    "rate": price,
                    "amount": price,
                }
            ],
            now=now_ts,
            number_kind="subscription",
        )

        sub = Subscription(
            customer_id=customer.id,
            plan_type=plan_type,
            price=price,
            start_date=start,
            end_date=start + timedelta(days=PLAN_DAYS[plan_type]),
            status=SUBSCRIPTION_STATUS_ACTIVE,
            invoice_id=invoice.id,
            created_at=now_ts,
        )
        db.session.add(sub)
        customer.customer_type = plan_type
        db.session.flush()

        refresh_customer_balance(customer.id)
        append_operation(
            operation_type=OP_SUBSCRIPTION_NEW,
            description=f"{customer.name} subscribed to the {plan_type} plan",
            customer_id=customer.id,
            invoice_id=invoice.id,
            occurred_at=now_ts,
        )

        db.session.commit()
        return sub

    return run_with_retry(_op)


def cancel_subscription(subscription_id: int, now: datetime | None = None) -> Subscription:
    def _op():
        now_ts = now or utcnow()
        sub = lock_for_update(db.session.query(Subscription).filter_by(id=subscription_id)).first()
        if sub is None:
            raise SubscriptionNotFound(f"Subscription {subscription_id} not found")

        if sub.status == SUBSCRIPTION_STATUS_ACTIVE:
            sub.status = SUBSCRIPTION_STATUS_CANCELLED
            sub.cancelled_at = now_ts
            db.session.flush()

            remaining = (
                db.session.query(Subscription.id)
                .filter(
                    Subscription.customer_id == sub.customer_id,
                    Subscription.status == SUBSCRIPTION_STATUS_ACTIVE,
                )
                .count()
            )
            if remaining == 0:
                customer = lock_customer(sub.customer_id)
                customer.customer_type = CUSTOMER_TYPE_VISITOR

            append_operation(
                operation_type=OP_SUBSCRIPTION_CANCELLED,
                description=f"Subscription {sub.id} ({sub.plan_type}) cancelled",
                customer_id=sub.customer_id,
                occurred_at=now_ts,
            )

        db.session.commit()
        return sub

    return run_with_retry(_op)


def reactivate_subscription(subscription_id: int, now: datetime | None = None) -> Subscription:
    """
    Put a cancelled subscription back in force for the rest of its period.

    Any other active plan of the customer is cancelled first, and the
    customer's type goes back to the plan name. No new invoice is created;
    the original SUB invoice still covers the period. Reactivating an
    already active subscription changes nothing.

    Raises:
        SubscriptionNotFound
        SubscriptionEnded: the period is over (end_date <= now)
    """
    def _op():
        now_ts = now or utcnow()
        sub = lock_for_update(db.session.query(Subscription).filter_by(id=subscription_id)).first()
        if sub is None:
            raise SubscriptionNotFound(f"Subscription {subscription_id} not found")

        if sub.status == SUBSCRIPTION_STATUS_ACTIVE:
            db.session.commit()
            return sub
        if sub.end_date <= now_ts:
            raise SubscriptionEnded(
                f"Subscription {sub.id} ended on {sub.end_date.date().isoformat()}",
                details={"subscription_id": sub.id, "status": sub.status},
            )

        customer = lock_customer(sub.customer_id)
        db.session.execute(
            update(Subscription)
            .where(
                Subscription.customer_id == customer.id,
                Subscription.status == SUBSCRIPTION_STATUS_ACTIVE,
                Subscription.id != sub.id,
            )
            .values(status=SUBSCRIPTION_STATUS_CANCELLED, cancelled_at=now_ts)
            .execution_options(synchronize_session=False)
        )

        sub.status = SUBSCRIPTION_STATUS_ACTIVE
        sub.cancelled_at = None
        customer.customer_type = sub.plan_type
        db.session.flush()

        append_operation(
            operation_type=OP_SUBSCRIPTION_REACTIVATED,
            description=f"Subscription {sub.id} ({sub.plan_type}) reactivated for {customer.name}",
            customer_id=customer.id,
            occurred_at=now_ts,
        )

        db.session.commit()
        return sub

    return run_with_retry(_op)


def expire_subscriptions(now: datetime | None = None) -> int:
    """Mark active subscriptions past their end date as expired. Returns how many changed."""
    def _op():
        now_ts = now or utcnow()
        expired = (
            lock_for_update(db.session.query(Subscription))
            .filter(
                Subscription.status == SUBSCRIPTION_STATUS_ACTIVE,
                Subscription.end_date <= now_ts,
            )
            .all()
        )
        touched_customers = set()
        for sub in expired:
            sub.status = SUBSCRIPTION_STATUS_EXPIRED
            touched_customers.add(sub.customer_id)
        db.session.flush()

        for customer_id in touched_customers:
            still_active = (
                db.session.query(Subscription.id)
                .filter(
                    Subscription.customer_id == customer_id,
                    Subscription.status == SUBSCRIPTION_STATUS_ACTIVE,
                )
                .first()
            )
            if still_active is None:
                lock_customer(customer_id).customer_type = CUSTOMER_TYPE_VISITOR

        db.session.commit()
        return len(expired)

    return run_with_retry(_op)
