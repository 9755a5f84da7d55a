import pytest

from backspace.extensions import db
from backspace.models import Customer, Invoice
from backspace.services import (
    balance_service,
    invoice_service,
    payment_service,
    settings_service,
)
from backspace.services.errors import CustomerNotFound, InsufficientBalance, InvalidAmount


def _sale(customer, total, now):
    invoice = invoice_service.create_invoice_record(
        customer=db.session.get(Customer, customer.id),
        lines=[{"kind": "session", "description": "Session", "amount": total}],
        now=now,
    )
    balance_service.refresh_customer_balance(customer.id)
    db.session.commit()
    return invoice


def test_new_customer_has_zero_balance(customer):
    assert customer.balance == 0
    assert balance_service.compute_balance(customer.id) == 0


def test_unpaid_sales_make_balance_negative(customer, now):
    _sale(customer, 4000, now)
    invoice = _sale(customer, 1000, now)
    payment_service.record_payment(invoice.id, 400, "cash", now=now)

    assert balance_service.compute_balance(customer.id) == -4600
    db.session.expire_all()
    assert db.session.get(Customer, customer.id).balance == -4600


def test_cancelled_invoice_leaves_balance(customer, now):
    invoice = _sale(customer, 2500, now)
    invoice_service.cancel_invoice(invoice.id, now=now)

    assert balance_service.compute_balance(customer.id) == 0


def test_withdrawal_creates_settled_invoice(customer, now):
    invoice = balance_service.withdraw_balance(customer.id, 1500, notes="cash out", now=now)

    assert invoice.invoice_type == "withdrawal"
    assert invoice.invoice_number == "WDR-0001"
    assert invoice.status == "paid"
    assert invoice.paid_amount == invoice.total == 1500
    assert invoice.lines[0].kind == "withdrawal"
    assert balance_service.compute_balance(customer.id) == -1500


def test_withdrawal_respects_debt_limit(customer, now):
    settings_service.update_settings({"debt_limit": 2000})
    _sale(customer, 1500, now)

    with pytest.raises(InsufficientBalance) as exc:
        balance_service.withdraw_balance(customer.id, 600, now=now)
    assert exc.value.details["debt_limit"] == 2000

    balance_service.withdraw_balance(customer.id, 500, now=now)
    assert balance_service.compute_balance(customer.id) == -2000
    assert db.session.query(Invoice).filter_by(invoice_type="withdrawal").count() == 1


def test_withdrawal_without_limit_is_unconstrained(customer, now):
    balance_service.withdraw_balance(customer.id, 1_000_000, now=now)
    assert balance_service.compute_balance(customer.id) == -1_000_000


@pytest.mark.parametrize("amount", [0, -1, 2.5])
def test_withdrawal_rejects_bad_amounts(customer, now, amount):
    with pytest.raises(InvalidAmount):
        balance_service.withdraw_balance(customer.id, amount, now=now)


def test_refund_credits_customer(customer, now):
    _sale(customer, 3000, now)
    invoice = balance_service.issue_refund(customer.id, 1000, reason="Broken chair", now=now)

    assert invoice.invoice_number == "RFD-0001"
    assert invoice.status == "paid"
    assert invoice.lines[0].description == "Broken chair"
    assert balance_service.compute_balance(customer.id) == -2000


def test_balance_summary_lists_unpaid_invoices(customer, now):
    first = _sale(customer, 3000, now)
    second = _sale(customer, 700, now)
    payment_service.record_payment(second.id, 700, "cash", now=now)

    summary = balance_service.balance_summary(customer.id)
    assert summary["balance"] == -3000
    assert summary["outstanding"] == 3000
    assert [inv["id"] for inv in summary["unpaid_invoices"]] == [first.id]


def test_unknown_customer(db_session):
    with pytest.raises(CustomerNotFound):
        balance_service.balance_summary(424242)
