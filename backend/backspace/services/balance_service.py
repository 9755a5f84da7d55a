# Overview: Customer balance derived from invoice and withdrawal history.

"""
Customer Balance Ledger

SIGN CONVENTION: balance < 0 means the customer owes the business.

    balance = - sum(total - paid_amount) over unpaid sale invoices
              + sum(total) over non-cancelled refund invoices
              - sum(total) over non-cancelled withdrawal invoices

Customer.balance is only a cache of that formula. refresh_customer_balance()
recomputes it from scratch inside the caller's transaction, and every flow
that changes an input (invoice creation, payment, cancellation, withdrawal,
refund) calls it before committing.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, Invoice
from ..models.invoices import (
    INVOICE_STATUS_CANCELLED,
    INVOICE_STATUS_UNPAID,
    INVOICE_TYPE_REFUND,
    INVOICE_TYPE_SALE,
    INVOICE_TYPE_WITHDRAWAL,
    LEGACY_UNPAID_STATUSES,
    LINE_KIND_REFUND,
    LINE_KIND_WITHDRAWAL,
)
from ..validation import clean_optional_text
from backspace.money import MAX_AMOUNT_PIASTERS, format_minor_units
from backspace.time_utils import utcnow
from .concurrency import run_with_retry
from .errors import CustomerNotFound, InsufficientBalance, InvalidAmount
from .ledger_service import OP_BALANCE_WITHDRAWAL, OP_REFUND_ISSUED, append_operation
from .settings_service import get_settings


def _sum(query) -> int:
    return int(query.scalar() or 0)


def compute_balance(customer_id: int) -> int:
    outstanding = _sum(
        db.session.query(func.coalesce(func.sum(Invoice.total - Invoice.paid_amount), 0)).filter(
            Invoice.customer_id == customer_id,
            Invoice.invoice_type == INVOICE_TYPE_SALE,
            Invoice.status.in_((INVOICE_STATUS_UNPAID,) + LEGACY_UNPAID_STATUSES),
        )
    )
    refunds = _sum(
        db.session.query(func.coalesce(func.sum(Invoice.total), 0)).filter(
            Invoice.customer_id == customer_id,
            Invoice.invoice_type == INVOICE_TYPE_REFUND,
            Invoice.status != INVOICE_STATUS_CANCELLED,
        )
    )
    withdrawals = _sum(
        db.session.query(func.coalesce(func.sum(Invoice.total), 0)).filter(
            Invoice.customer_id == customer_id,
            Invoice.invoice_type == INVOICE_TYPE_WITHDRAWAL,
            Invoice.status != INVOICE_STATUS_CANCELLED,
        )
    )
    return -outstanding + refunds - withdrawals


def refresh_customer_balance(customer_id: int) -> int:
    """Rewrite the cached Customer.balance. Flushes only."""
    db.session.flush()
    balance = compute_balance(customer_id)
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")
    if customer.balance != balance:
        customer.balance = balance
        db.session.flush()
    return balance


def balance_summary(customer_id: int) -> dict:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if customer is None:
        raise CustomerNotFound(f"Customer {customer_id} not found")

    unpaid = (
        db.session.query(Invoice)
        .filter(
            Invoice.customer_id == customer_id,
            Invoice.invoice_type == INVOICE_TYPE_SALE,
            Invoice.status.in_((INVOICE_STATUS_UNPAID,) + LEGACY_UNPAID_STATUSES),
        )
        .order_by(Invoice.due_date.asc(), Invoice.id.asc())
        .all()
    )
    return {
        "customer_id": customer.id,
        "customer_name": customer.name,
        "balance": compute_balance(customer_id),
        "outstanding": sum(inv.remaining for inv in unpaid),
        "unpaid_invoices": [inv.to_dict(include_lines=False) for inv in unpaid],
    }


def _validate_amount(amount) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
        raise InvalidAmount("Amount must be a positive integer number of piasters")
    if amount > MAX_AMOUNT_PIASTERS:
        raise InvalidAmount(f"Amount cannot exceed {MAX_AMOUNT_PIASTERS}")


def withdraw_balance(customer_id: int, amount: int, notes: str | None = None, now: datetime | None = None) -> Invoice:
    """
    Record money handed to the customer against their balance.

    Creates a settled withdrawal invoice. When the settings carry a
    debt_limit, the resulting balance may not fall below -debt_limit.

    Raises:
        InvalidAmount: amount <= 0
        CustomerNotFound
        InsufficientBalance: the withdrawal would exceed the debt limit
    """
    from .invoice_service import create_invoice_record, lock_customer

    _validate_amount(amount)
    notes = clean_optional_text(notes, "notes")

    def _op():
        now_ts = now or utcnow()
        customer = lock_customer(customer_id)
        settings = get_settings()

        current = compute_balance(customer.id)
        if settings.debt_limit is not None and current - amount < -settings.debt_limit:
            raise InsufficientBalance(
                f"Withdrawal would exceed the debt limit of {settings.debt_limit}",
                details={"balance": current, "amount": amount, "debt_limit": settings.debt_limit},
            )

        invoice = create_invoice_record(
            customer=customer,
            lines=[
                {
                    "kind": LINE_KIND_WITHDRAWAL,
                    "description": "Balance withdrawal",
                    "quantity": 1,
                    "rate": amount,
                    "amount": amount,
                }
            ],
            now=now_ts,
            invoice_type=INVOICE_TYPE_WITHDRAWAL,
            number_kind="withdrawal",
            settled=True,
            notes=notes,
        )
        refresh_customer_balance(customer.id)
        append_operation(
            operation_type=OP_BALANCE_WITHDRAWAL,
            description=f"{customer.name} withdrew {format_minor_units(amount)}",
            customer_id=customer.id,
            invoice_id=invoice.id,
            occurred_at=now_ts,
            payload={"amount": amount},
        )

        db.session.commit()
        return invoice

    return run_with_retry(_op)


def issue_refund(customer_id: int, amount: int, reason: str | None = None, now: datetime | None = None) -> Invoice:
    """Credit the customer with a settled refund invoice."""
    from .invoice_service import create_invoice_record, lock_customer

    _validate_amount(amount)
    reason = clean_optional_text(reason, "reason")

    def _op():
        now_ts = now or utcnow()
        customer = lock_customer(customer_id)

        invoice = create_invoice_record(
            customer=customer,
            lines=[
                {
                    "kind": LINE_KIND_REFUND,
                    "description": (reason or "Refund")[:255],
                    "quantity": 1,
                    "rate": amount,
                    "amount": amount,
                }
            ],
            now=now_ts,
            invoice_type=INVOICE_TYPE_REFUND,
            number_kind="refund",
            settled=True,
            notes=reason,
        )
        refresh_customer_balance(customer.id)
        append_operation(
            operation_type=OP_REFUND_ISSUED,
            description=f"Refund of {format_minor_units(amount)} issued to {customer.name}",
            customer_id=customer.id,
            invoice_id=invoice.id,
            occurred_at=now_ts,
            payload={"amount": amount},
        )

        db.session.commit()
        return invoice

    return run_with_retry(_op)
