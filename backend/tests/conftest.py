"""
Pytest fixtures for MyPOS ledger tests.

Provides the test database, seed data (walk-in customer, cashier, products,
supplier, credit customer) and a test client.
"""

from datetime import datetime

import pytest

from mypos import create_app
from mypos.config import TestingConfig
from mypos.extensions import db
from mypos.models import Customer, Product, Supplier, User
from mypos.services.customer_service import ensure_walk_in_customer
from mypos.services.ledger_schemas import LedgerContext


BUSINESS_TIME = datetime(2026, 1, 14, 10, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestingConfig)

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
        app.config['LEDGER_ALLOW_NEGATIVE_STOCK'] = TestingConfig.LEDGER_ALLOW_NEGATIVE_STOCK
        app.config['LEDGER_ENFORCE_RETURN_LIMITS'] = TestingConfig.LEDGER_ENFORCE_RETURN_LIMITS


@pytest.fixture(scope='function')
def walk_in(db_session):
    customer = ensure_walk_in_customer()
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def cashier(db_session):
    user = User(username="cashier", full_name="Test Cashier", role="CASHIER", is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def ctx(cashier):
    """Ledger context pinned to a fixed business time."""
    return LedgerContext(user_id=cashier.id, now=BUSINESS_TIME)


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Acme Wholesale", phone="555-0100", is_active=True)
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def product(db_session):
    """Product P: stock 10, min level 5, cost 35, price 100 (cents)."""
    product = Product(
        code="P-001",
        name="Widget",
        cost_price_cents=35,
        sell_price_cents=100,
        stock_qty=10,
        min_stock_level=5,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def second_product(db_session):
    product = Product(
        code="P-002",
        name="Gadget",
        cost_price_cents=120,
        sell_price_cents=250,
        stock_qty=4,
        min_stock_level=1,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def credit_customer(db_session, walk_in):
    customer = Customer(
        name="Jane Credit",
        phone="555-0199",
        is_credit_customer=True,
        credit_limit_cents=1000,
        current_credit_cents=0,
        total_purchases_cents=0,
        is_active=True,
    )
    db_session.add(customer)
    db_session.commit()
    return customer
