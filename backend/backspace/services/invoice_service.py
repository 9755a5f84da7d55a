# Overview: Service-layer operations for invoices; creation, lookup and cancellation.

"""
Invoice Lifecycle

LIFECYCLE:
    unpaid -> paid        (payments reach the total; payment_service)
    unpaid -> cancelled   (cancel_invoice, only before any money arrived)

Both paid and cancelled are terminal. After creation only paid_amount,
status and their timestamps ever change; lines and amounts are frozen.

INVOICE TYPES:
- sale: session invoices (INV-xxxx) and subscription invoices (SUB-xxxx)
- withdrawal: customer takes money against their balance (WDR-xxxx)
- refund: business credits the customer (RFD-xxxx)
Withdrawal and refund invoices are created already settled.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from ..extensions import db
from ..models import Customer, Invoice, InvoiceLine
from ..models.invoices import (
    INVOICE_STATUS_CANCELLED,
    INVOICE_STATUS_PAID,
    INVOICE_STATUS_UNPAID,
    INVOICE_TYPE_SALE,
    LEGACY_UNPAID_STATUSES,
    LINE_KIND_DISCOUNT,
    LINE_KIND_TAX,
)
from ..validation import clean_optional_text
from backspace.time_utils import utcnow
from .balance_service import refresh_customer_balance
from .concurrency import lock_for_update, run_with_retry
from .document_service import next_invoice_number
from .errors import (
    CancellationNotAllowed,
    CustomerNotFound,
    InvoiceAlreadyFinalized,
    InvoiceNotFound,
)
from .ledger_service import OP_INVOICE_CANCELLED, OP_INVOICE_CREATED, append_operation


# =============================================================================
# CREATION (flush-only; callers own the transaction)
# =============================================================================

def create_invoice_record(
    *,
    customer: Customer,
    lines: list[dict],
    now: datetime,
    invoice_type: str = INVOICE_TYPE_SALE,
    number_kind: str = "sale",
    due_days: int = 0,
    settled: bool = False,
    notes: str | None = None,
    session_snapshot: dict | None = None,
) -> Invoice:
    """
    Persist an invoice with its lines inside the caller's transaction.

    total is the plain sum of line amounts (discount lines are negative).
    A settled invoice, or one whose total is 0, is born paid.
    """
    discount = -sum(line["amount"] for line in lines if line.get("kind") == LINE_KIND_DISCOUNT)
    tax = sum(line["amount"] for line in lines if line.get("kind") == LINE_KIND_TAX)
    total = sum(line["amount"] for line in lines)
    subtotal = total + discount - tax

    invoice = Invoice(
        invoice_number=next_invoice_number(number_kind),
        invoice_type=invoice_type,
        customer_id=customer.id,
        customer_name=customer.name,
        customer_phone=customer.phone,
        subtotal=subtotal,
        discount=discount,
        tax=tax,
        total=total,
        paid_amount=0,
        status=INVOICE_STATUS_UNPAID,
        due_date=now + timedelta(days=due_days),
        notes=notes,
        created_at=now,
    )
    if settled or total == 0:
        invoice.paid_amount = total
        invoice.status = INVOICE_STATUS_PAID
        invoice.paid_at = now

    for key, value in (session_snapshot or {}).items():
        setattr(invoice, key, value)

    for line in lines:
        invoice.lines.append(
            InvoiceLine(
                kind=line.get("kind"),
                description=line["description"][:255],
                quantity=line.get("quantity", 1),
                rate=line.get("rate", line["amount"]),
                amount=line["amount"],
                inventory_item_id=line.get("inventory_item_id"),
            )
        )

    db.session.add(invoice)
    db.session.flush()

    append_operation(
        operation_type=OP_INVOICE_CREATED,
        description=f"Invoice {invoice.invoice_number} created for {customer.name}",
        customer_id=customer.id,
        resource_id=invoice.resource_id,
        invoice_id=invoice.id,
        session_ref=invoice.session_ref,
        occurred_at=now,
    )
    return invoice


# =============================================================================
# QUERIES
# =============================================================================

def get_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.query(Invoice).filter_by(id=invoice_id).first()
    if invoice is None:
        raise InvoiceNotFound(f"Invoice {invoice_id} not found")
    return invoice


def list_invoices(
    status: str | None = None,
    customer_id: int | None = None,
    invoice_type: str | None = None,
) -> list[Invoice]:
    """Newest first. status='unpaid' also matches legacy pending/partially_paid rows."""
    query = db.session.query(Invoice)
    if status == INVOICE_STATUS_UNPAID:
        query = query.filter(Invoice.status.in_((INVOICE_STATUS_UNPAID,) + LEGACY_UNPAID_STATUSES))
    elif status:
        query = query.filter(Invoice.status == status)
    if customer_id is not None:
        query = query.filter(Invoice.customer_id == customer_id)
    if invoice_type:
        query = query.filter(Invoice.invoice_type == invoice_type)
    return query.order_by(Invoice.created_at.desc(), Invoice.id.desc()).all()


def lock_invoice(invoice_id: int) -> Invoice:
    invoice = lock_for_update(db.session.query(Invoice).filter_by(id=invoice_id)).first()
    if invoice is None:
        raise InvoiceNotFound(f"Invoice {invoice_id} not found")
    return invoice


def lock_customer(customer_id: int) -> Customer:
    customer = lock_for_update(db.session.query(Customer).filter_by(id=customer_id)).first()
    if customer is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")
    return customer


# =============================================================================
# CANCELLATION
# =============================================================================

def cancel_invoice(invoice_id: int, reason: str | None = None, now: datetime | None = None) -> Invoice:
    """
    Cancel an invoice that has not received any money.

    Raises:
        InvoiceNotFound
        InvoiceAlreadyFinalized: invoice is paid or already cancelled
        CancellationNotAllowed: a partial payment has been recorded
    """
    reason = clean_optional_text(reason, "reason")

    def _op():
        now_ts = now or utcnow()
        invoice = lock_invoice(invoice_id)

        if invoice.is_finalized:
            raise InvoiceAlreadyFinalized(
                f"Invoice {invoice.invoice_number} is already {invoice.effective_status}",
                details={"invoice_id": invoice.id, "status": invoice.effective_status},
            )
        if invoice.paid_amount > 0:
            raise CancellationNotAllowed(
                f"Invoice {invoice.invoice_number} has received payments and cannot be cancelled",
                details={"invoice_id": invoice.id, "paid_amount": invoice.paid_amount},
            )

        invoice.status = INVOICE_STATUS_CANCELLED
        invoice.cancelled_at = now_ts
        invoice.cancel_reason = reason
        db.session.flush()

        refresh_customer_balance(invoice.customer_id)
        append_operation(
            operation_type=OP_INVOICE_CANCELLED,
            description=f"Invoice {invoice.invoice_number} cancelled",
            customer_id=invoice.customer_id,
            invoice_id=invoice.id,
            occurred_at=now_ts,
        )

        db.session.commit()
        return invoice

    return run_with_retry(_op)
