# Overview: Service-layer operations for customers; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer
from ..validation import CUSTOMER_POLICY, enforce_rules_customer, validate_payload
from backspace.time_utils import utcnow
from .concurrency import run_with_retry
from .document_service import next_customer_human_id
from .errors import CustomerNotFound
from .ledger_service import OP_CUSTOMER_NEW, append_operation


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")
    return customer


def list_customers(search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(
            or_(Customer.name.ilike(like), Customer.phone.ilike(like), Customer.human_id.ilike(like))
        )
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def create_customer(payload: dict, now: datetime | None = None) -> Customer:
    """Validate, allocate the human id (C-0001, ...) and log customer_new."""
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False)
    enforce_rules_customer(patch)

    def _op():
        now_ts = now or utcnow()
        customer = Customer(human_id=next_customer_human_id(), created_at=now_ts, **patch)
        db.session.add(customer)
        db.session.flush()

        append_operation(
            operation_type=OP_CUSTOMER_NEW,
            description=f"New customer {customer.name} ({customer.human_id})",
            customer_id=customer.id,
            occurred_at=now_ts,
        )
        db.session.commit()
        return customer

    return run_with_retry(_op)


def update_customer(customer_id: int, payload: dict) -> Customer:
    patch = validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True)
    enforce_rules_customer(patch)

    def _op():
        customer = get_customer(customer_id)
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def find_duplicate(name: str | None = None, phone: str | None = None) -> Customer | None:
    """First customer whose name or phone matches exactly (after trimming), else None."""
    conditions = []
    if name and name.strip():
        conditions.append(Customer.name == name.strip())
    if phone and phone.strip():
        conditions.append(Customer.phone == phone.strip())
    if not conditions:
        return None
    return db.session.query(Customer).filter(or_(*conditions)).order_by(Customer.id.asc()).first()
