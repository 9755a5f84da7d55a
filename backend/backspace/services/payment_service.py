# Overview: Service-layer operations for payment; encapsulates business logic and database work.

"""
Payment Processing Service

WHY: Customers settle invoices at the desk, often in pieces and often
several invoices at once.

DESIGN PRINCIPLES:
- Payments are separate from invoices (many-to-one relationship)
- Partial payments: an invoice stays unpaid until paid_amount == total
- No overpayment: a payment larger than what is left on the invoice fails
  and changes nothing
- Bulk payments allocate one amount across invoices, oldest due first
- Immutable: payment rows are never updated or deleted
"""

from __future__ import annotations

import uuid
from datetime import datetime

from ..extensions import db
from ..models import Invoice, Payment
from ..models.invoices import INVOICE_STATUS_PAID
from ..validation import clean_optional_text, require_id_list
from backspace.money import MAX_AMOUNT_PIASTERS, format_minor_units
from backspace.time_utils import utcnow
from .balance_service import refresh_customer_balance
from .concurrency import lock_for_update, run_with_retry
from .errors import InvalidAmount, InvalidPaymentMethod, InvoiceAlreadyFinalized, InvoiceNotFound
from .invoice_service import get_invoice, lock_customer, lock_invoice
from .ledger_service import OP_PAYMENT_RECEIVED, append_operation


# =============================================================================
# PAYMENT METHODS (CONSTANTS)
# =============================================================================

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_TRANSFER = "transfer"

VALID_METHODS = [
    METHOD_CASH,
    METHOD_CARD,
    METHOD_TRANSFER,
]


def _validate_method(method: str) -> None:
    if method not in VALID_METHODS:
        raise InvalidPaymentMethod(f"Invalid payment method: {method}. Must be one of {VALID_METHODS}")


def _validate_amount(amount) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidAmount("Payment amount must be a positive integer number of piasters")
    if amount > MAX_AMOUNT_PIASTERS:
        raise InvalidAmount(f"Payment amount cannot exceed {MAX_AMOUNT_PIASTERS}")


def _apply_payment(
    invoice: Invoice,
    amount: int,
    *,
    method: str,
    notes: str | None,
    now: datetime,
    bulk_reference: str | None = None,
) -> Payment:
    """Book `amount` against a locked, unpaid invoice. Flushes only."""
    payment = Payment(
        invoice_id=invoice.id,
        amount=amount,
        method=method,
        notes=notes,
        bulk_reference=bulk_reference,
        occurred_at=now,
    )
    db.session.add(payment)

    invoice.paid_amount += amount
    if invoice.paid_amount == invoice.total:
        invoice.status = INVOICE_STATUS_PAID
        invoice.paid_at = now
    else:
        # Normalize legacy pending/partially_paid rows on first touch
        invoice.status = invoice.effective_status

    customer = lock_customer(invoice.customer_id)
    customer.total_spent = (customer.total_spent or 0) + amount
    db.session.flush()

    append_operation(
        operation_type=OP_PAYMENT_RECEIVED,
        description=f"Payment of {format_minor_units(amount)} ({method}) on {invoice.invoice_number}",
        customer_id=invoice.customer_id,
        invoice_id=invoice.id,
        occurred_at=now,
        payload={"amount": amount, "method": method, "bulk_reference": bulk_reference},
    )
    return payment


# =============================================================================
# SINGLE PAYMENT
# =============================================================================

def record_payment(
    invoice_id: int,
    amount: int,
    method: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> Invoice:
    """
    Record a payment against one invoice.

    Args:
        invoice_id: Invoice being paid
        amount: Piasters received (0 < amount <= remaining)
        method: cash, card or transfer
        notes: Free text (optional)
        now: Business time of the payment (defaults to utcnow)

    Returns:
        The updated Invoice

    Raises:
        InvoiceNotFound
        InvoiceAlreadyFinalized: invoice is paid or cancelled
        InvalidAmount: amount <= 0 or more than what is left
        InvalidPaymentMethod
    """
    _validate_amount(amount)
    _validate_method(method)
    notes = clean_optional_text(notes, "notes")

    def _op():
        now_ts = now or utcnow()
        invoice = lock_invoice(invoice_id)

        if invoice.is_finalized:
            raise InvoiceAlreadyFinalized(
                f"Invoice {invoice.invoice_number} is already {invoice.effective_status}",
                details={"invoice_id": invoice.id, "status": invoice.effective_status},
            )
        if amount > invoice.remaining:
            raise InvalidAmount(
                f"Payment amount ({amount}) exceeds remaining balance ({invoice.remaining})",
                details={"invoice_id": invoice.id, "amount": amount, "remaining": invoice.remaining},
            )

        _apply_payment(invoice, amount, method=method, notes=notes, now=now_ts)
        refresh_customer_balance(invoice.customer_id)

        db.session.commit()
        return invoice

    return run_with_retry(_op)


# =============================================================================
# BULK PAYMENT
# =============================================================================

def allocation_order(invoices: list[Invoice]) -> list[Invoice]:
    """Oldest due date first, then creation time, then id."""
    return sorted(invoices, key=lambda inv: (inv.due_date, inv.created_at, inv.id))


def record_bulk_payment(
    invoice_ids: list[int],
    amount: int,
    method: str,
    notes: str | None = None,
    now: datetime | None = None,
) -> list[Invoice]:
    """
    Spread one received amount across several invoices.

    Each invoice is paid in full before the next one gets anything. Paid
    and cancelled invoices are skipped. Allocation stops when the amount
    runs out; anything left once every invoice is settled is not booked.
    All payments created here share one bulk_reference.

    Returns:
        The invoices that received money, in allocation order
    """
    _validate_amount(amount)
    _validate_method(method)
    if not invoice_ids:
        raise InvalidAmount("At least one invoice is required")
    require_id_list(invoice_ids, "invoice_ids")
    notes = clean_optional_text(notes, "notes")

    def _op():
        now_ts = now or utcnow()
        wanted = list(dict.fromkeys(invoice_ids))

        invoices = (
            lock_for_update(db.session.query(Invoice))
            .filter(Invoice.id.in_(wanted))
            .all()
        )
        found = {inv.id for inv in invoices}
        missing = [i for i in wanted if i not in found]
        if missing:
            raise InvoiceNotFound(f"Invoice {missing[0]} not found", details={"missing": missing})

        reference = uuid.uuid4().hex
        left = amount
        touched = []
        for invoice in allocation_order(invoices):
            if left <= 0:
                break
            if invoice.is_finalized or invoice.remaining <= 0:
                continue
            portion = min(left, invoice.remaining)
            _apply_payment(
                invoice,
                portion,
                method=method,
                notes=notes,
                now=now_ts,
                bulk_reference=reference,
            )
            left -= portion
            touched.append(invoice)

        for customer_id in {inv.customer_id for inv in touched}:
            refresh_customer_balance(customer_id)

        db.session.commit()
        return touched

    return run_with_retry(_op)


def get_payment_summary(invoice_id: int) -> dict:
    invoice = get_invoice(invoice_id)
    return {
        "invoice_id": invoice.id,
        "invoice_number": invoice.invoice_number,
        "total": invoice.total,
        "paid": invoice.paid_amount,
        "remaining": invoice.remaining,
        "status": invoice.effective_status,
        "is_partially_paid": invoice.is_partially_paid,
        "payments": [p.to_dict() for p in invoice.payments],
    }
