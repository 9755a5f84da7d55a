"""
Pytest fixtures for backspace billing tests.

Provides test database setup, record factories, and test client.
"""

from datetime import datetime

import pytest
from backspace import create_app
from backspace.extensions import db
from backspace.services import customer_service, inventory_service, resource_service


# Fixed business time used across tests; a Wednesday
NOW = datetime(2024, 5, 15, 12, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def now():
    return NOW


@pytest.fixture(scope='function')
def make_customer(db_session):
    """Factory: make_customer(name="Mona", phone="0100")."""
    def _make(name="Mona Ali", phone="01000000001", **extra):
        return customer_service.create_customer({"name": name, "phone": phone, **extra}, now=NOW)
    return _make


@pytest.fixture(scope='function')
def make_resource(db_session):
    def _make(name="Desk 1", rate_per_hour=6000, resource_type="desk", **extra):
        return resource_service.create_resource(
            {"name": name, "rate_per_hour": rate_per_hour, "resource_type": resource_type, **extra}
        )
    return _make


@pytest.fixture(scope='function')
def make_item(db_session):
    def _make(name="Tea", price=500, quantity=10, min_stock=0, category="beverage"):
        return inventory_service.create_item(
            {"name": name, "price": price, "quantity": quantity, "min_stock": min_stock, "category": category}
        )
    return _make


@pytest.fixture(scope='function')
def customer(make_customer):
    return make_customer()


@pytest.fixture(scope='function')
def resource(make_resource):
    return make_resource()
