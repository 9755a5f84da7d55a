import pytest

from backspace.extensions import db
from backspace.models import DocumentSequence
from backspace.services import document_service
from backspace.services.document_service import DocumentSequenceError


def test_numbers_increase_per_kind(db_session):
    assert document_service.next_invoice_number("sale") == "INV-0001"
    assert document_service.next_invoice_number("sale") == "INV-0002"
    assert document_service.next_invoice_number("subscription") == "SUB-0001"
    assert document_service.next_invoice_number("withdrawal") == "WDR-0001"
    assert document_service.next_invoice_number("refund") == "RFD-0001"
    db.session.commit()


def test_customer_ids(make_customer):
    first = make_customer(name="A", phone="1")
    second = make_customer(name="B", phone="2")
    assert (first.human_id, second.human_id) == ("C-0001", "C-0002")


def test_unknown_kind(db_session):
    with pytest.raises(DocumentSequenceError):
        document_service.next_invoice_number("quote")


def test_ensure_sequences_is_idempotent(db_session):
    assert document_service.ensure_sequences() == 5
    assert document_service.ensure_sequences() == 0
    assert db.session.query(DocumentSequence).count() == 5
    assert document_service.next_invoice_number("sale") == "INV-0001"


def test_rolled_back_allocation_is_not_consumed(db_session):
    document_service.ensure_sequences()
    document_service.next_invoice_number("sale")
    db.session.rollback()
    assert document_service.next_invoice_number("sale") == "INV-0001"
