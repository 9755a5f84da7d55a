# Overview: Append-only operation log behind the activity feed and operation history.

from __future__ import annotations

import json
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..models import OperationRecord
from backspace.time_utils import utcnow
"""
Operation Log Invariants (authoritative)

- Append-only audit log for session, inventory, invoice, payment, customer
  and subscription lifecycle events.
- No domain/business logic in the log itself.
- Records are written inside the same DB transaction as the event they record.
- occurred_at is business time (the `now` the service acted on).
- Range filters in the read API are inclusive on both ends.
"""


OP_SESSION_START = "session_start"
OP_SESSION_END = "session_end"
OP_INVENTORY_ADD = "inventory_add"
OP_INVOICE_CREATED = "invoice_created"
OP_INVOICE_CANCELLED = "invoice_cancelled"
OP_PAYMENT_RECEIVED = "payment_received"
OP_CUSTOMER_NEW = "customer_new"
OP_SUBSCRIPTION_NEW = "subscription_new"
OP_SUBSCRIPTION_CANCELLED = "subscription_cancelled"
OP_SUBSCRIPTION_REACTIVATED = "subscription_reactivated"
OP_BALANCE_WITHDRAWAL = "balance_withdrawal"
OP_REFUND_ISSUED = "refund_issued"

OPERATION_TYPES = {
    OP_SESSION_START,
    OP_SESSION_END,
    OP_INVENTORY_ADD,
    OP_INVOICE_CREATED,
    OP_INVOICE_CANCELLED,
    OP_PAYMENT_RECEIVED,
    OP_CUSTOMER_NEW,
    OP_SUBSCRIPTION_NEW,
    OP_SUBSCRIPTION_CANCELLED,
    OP_SUBSCRIPTION_REACTIVATED,
    OP_BALANCE_WITHDRAWAL,
    OP_REFUND_ISSUED,
}


def append_operation(
    *,
    operation_type: str,
    description: str,
    customer_id: int | None = None,
    resource_id: int | None = None,
    invoice_id: int | None = None,
    session_ref: int | None = None,
    occurred_at: Optional[datetime] = None,
    payload: Optional[dict] = None,
) -> OperationRecord:
    """
    Append one operation record.

    - No domain logic here.
    - No deletes/updates of existing records.
    - Flushes only; the caller's transaction decides whether it sticks.
    - payload is a small JSON-serializable dict of structured event data.
    """
    if operation_type not in OPERATION_TYPES:
        raise ValueError(f"Unknown operation type: {operation_type}")

    record = OperationRecord(
        operation_type=operation_type,
        description=description[:255],
        customer_id=customer_id,
        resource_id=resource_id,
        invoice_id=invoice_id,
        session_ref=session_ref,
        occurred_at=occurred_at or utcnow(),
        payload=json.dumps(payload, sort_keys=True) if payload is not None else None,
    )
    db.session.add(record)
    db.session.flush()
    return record


def recent_activity(limit: int = 10) -> list[OperationRecord]:
    """Newest first; feeds the dashboard activity feed."""
    return (
        db.session.query(OperationRecord)
        .order_by(OperationRecord.occurred_at.desc(), OperationRecord.id.desc())
        .limit(limit)
        .all()
    )


def operation_history(
    *,
    operation_type: str | None = None,
    customer_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
    limit: int = 200,
) -> list[OperationRecord]:
    query = db.session.query(OperationRecord)
    if operation_type:
        query = query.filter(OperationRecord.operation_type == operation_type)
    if customer_id is not None:
        query = query.filter(OperationRecord.customer_id == customer_id)
    if start:
        query = query.filter(OperationRecord.occurred_at >= start)
    if end:
        query = query.filter(OperationRecord.occurred_at <= end)

    return (
        query.order_by(OperationRecord.occurred_at.desc(), OperationRecord.id.desc())
        .limit(limit)
        .all()
    )
