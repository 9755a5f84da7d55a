# Overview: Service-layer operations for resource sessions; start, live charge and end.

"""
Session Lifecycle

    start_session  -> ActiveSession row, resource marked unavailable
    get_live_charge (any number of times, read-only)
    end_session    -> Invoice; session and its consumptions deleted,
                      resource available again

EXCLUSIVITY: a resource is claimed with one conditional UPDATE
(... SET is_available = 0 WHERE id = ? AND is_available = 1). Two starts on
the same resource race inside the store, and exactly one of them sees a
changed row. The unique constraint on active_sessions.resource_id backs it up.

EXACTLY-ONCE END: end_session deletes the session in the same transaction
that creates the invoice, so a repeated or concurrent end finds no session
and raises SessionNotFound.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from ..extensions import db
from ..models import ActiveSession, Customer, Resource
from backspace.time_utils import utcnow
from .balance_service import refresh_customer_balance
from .billing_service import SessionCharge, build_invoice_lines, compute_session_charge
from .concurrency import lock_for_update, run_with_retry
from .errors import CustomerNotFound, ResourceNotFound, ResourceUnavailable, SessionNotFound
from .invoice_service import create_invoice_record, lock_customer
from .ledger_service import OP_SESSION_END, OP_SESSION_START, append_operation
from .settings_service import BillingSettings, get_settings
from .subscription_service import has_active_subscription


def get_session(session_id: int) -> ActiveSession:
    session = db.session.query(ActiveSession).filter_by(id=session_id).first()
    if session is None:
        raise SessionNotFound(f"Session {session_id} not found or already ended")
    return session


def list_active_sessions() -> list[ActiveSession]:
    return db.session.query(ActiveSession).order_by(ActiveSession.started_at.asc(), ActiveSession.id.asc()).all()


def _set_resource_available(resource_id: int, *, available: bool) -> int:
    stmt = (
        update(Resource)
        .where(Resource.id == resource_id, Resource.is_available == (not available))
        .values(is_available=available)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount


def start_session(customer_id: int, resource_id: int, now: datetime | None = None) -> ActiveSession:
    """
    Open a session for a customer on a free resource.

    Raises:
        CustomerNotFound, ResourceNotFound
        ResourceUnavailable: the resource is already in use
    """
    def _op():
        now_ts = now or utcnow()

        customer = db.session.query(Customer).filter_by(id=customer_id).first()
        if customer is None:
            raise CustomerNotFound(f"Customer {customer_id} not found")
        resource = db.session.query(Resource).filter_by(id=resource_id).first()
        if resource is None:
            raise ResourceNotFound(f"Resource {resource_id} not found")

        if not _set_resource_available(resource_id, available=False):
            raise ResourceUnavailable(
                f"{resource.name} is already in use",
                details={"resource_id": resource_id},
            )

        session = ActiveSession(
            customer_id=customer.id,
            resource_id=resource.id,
            customer_name=customer.name,
            resource_name=resource.name,
            resource_rate=resource.rate_per_hour,
            resource_max_price=resource.max_price or 0,
            started_at=now_ts,
            is_subscribed=has_active_subscription(customer.id, now_ts),
        )
        db.session.add(session)
        db.session.flush()

        append_operation(
            operation_type=OP_SESSION_START,
            description=f"{customer.name} started a session on {resource.name}",
            customer_id=customer.id,
            resource_id=resource.id,
            session_ref=session.id,
            occurred_at=now_ts,
        )

        db.session.commit()
        return session

    return run_with_retry(_op)


def get_live_charge(session_id: int, now: datetime | None = None, settings: BillingSettings | None = None) -> SessionCharge:
    """Read-only cost of an open session as of `now`."""
    session = get_session(session_id)
    return compute_session_charge(session, now or utcnow(), settings or get_settings())


def end_session(session_id: int, now: datetime | None = None, settings: BillingSettings | None = None):
    """
    Close a session and bill it.

    Everything happens in one transaction: invoice and lines are created,
    the resource is freed, the session and its consumptions are deleted,
    the customer's counters and balance are updated and both events are
    logged. Consumed stock is not returned to the shelf.

    Returns:
        The new Invoice

    Raises:
        SessionNotFound: no such session (never started, or already ended)
    """
    def _op():
        now_ts = now or utcnow()
        billing = settings or get_settings()

        session = lock_for_update(db.session.query(ActiveSession).filter_by(id=session_id)).first()
        if session is None:
            raise SessionNotFound(f"Session {session_id} not found or already ended")

        charge = compute_session_charge(session, now_ts, billing)
        lines = build_invoice_lines(session, charge, billing)
        customer = lock_customer(session.customer_id)

        invoice = create_invoice_record(
            customer=customer,
            lines=lines,
            now=now_ts,
            due_days=billing.invoice_due_days,
            session_snapshot={
                "session_ref": session.id,
                "resource_id": session.resource_id,
                "resource_name": session.resource_name,
                "session_started_at": session.started_at,
                "session_ended_at": now_ts,
                "duration_minutes": charge.duration_minutes,
            },
        )

        _set_resource_available(session.resource_id, available=True)
        customer.total_sessions = (customer.total_sessions or 0) + 1

        append_operation(
            operation_type=OP_SESSION_END,
            description=f"{session.customer_name} ended a session on {session.resource_name} ({charge.duration_minutes} min)",
            customer_id=session.customer_id,
            resource_id=session.resource_id,
            invoice_id=invoice.id,
            session_ref=session.id,
            occurred_at=now_ts,
            payload={"duration_minutes": charge.duration_minutes, "total": charge.total},
        )

        db.session.delete(session)
        db.session.flush()
        refresh_customer_balance(customer.id)

        db.session.commit()
        return invoice

    return run_with_retry(_op)
