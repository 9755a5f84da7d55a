import pytest

from backspace.services import customer_service
from backspace.services.errors import CustomerNotFound


def test_find_duplicate_by_name_or_phone(make_customer):
    mona = make_customer(name="Mona Ali", phone="0101")
    omar = make_customer(name="Omar Samy", phone="0102")

    assert customer_service.find_duplicate(name="Mona Ali").id == mona.id
    assert customer_service.find_duplicate(phone="0102").id == omar.id
    # either field is enough; the lowest id wins
    assert customer_service.find_duplicate(name="Omar Samy", phone="0101").id == mona.id
    assert customer_service.find_duplicate(name="  Mona Ali ").id == mona.id


def test_find_duplicate_is_exact_match(make_customer):
    make_customer(name="Mona Ali", phone="0101")

    assert customer_service.find_duplicate(name="Mona") is None
    assert customer_service.find_duplicate(name="mona ali") is None
    assert customer_service.find_duplicate(phone="010") is None


def test_find_duplicate_without_criteria(make_customer):
    make_customer()

    assert customer_service.find_duplicate() is None
    assert customer_service.find_duplicate(name="  ", phone="") is None


def test_get_unknown_customer(db_session):
    with pytest.raises(CustomerNotFound):
        customer_service.get_customer(999)
