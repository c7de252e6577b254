"""
Pytest fixtures for PharmaPOS backend tests.

Provides in-memory database setup, catalog fixtures, a recording
accounting integration, and the test client.
"""

from decimal import Decimal

import pytest

from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.models import Product, Supplier
from pharmapos.services.accounting_integration import AccountingIntegration, set_accounting_integration


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

        set_accounting_integration(app, AccountingIntegration())

        yield db.session

        # Cleanup after test
        db.session.rollback()


class RecordingAccounting(AccountingIntegration):
    """Accounting double that records calls and can be told to fail."""

    def __init__(self, group_id="TG-0001"):
        self.group_id = group_id
        self.fail_on_complete = False
        self.fail_on_unlock = False
        self.completed = []
        self.unlocked = []

    def on_purchase_order_completed(self, order, user_id):
        if self.fail_on_complete:
            raise RuntimeError("accounting service unavailable")
        self.completed.append((order.id, user_id))
        return self.group_id

    def on_purchase_order_unlocked(self, order):
        if self.fail_on_unlock:
            raise RuntimeError("accounting service unavailable")
        self.unlocked.append(order.id)


@pytest.fixture(scope='function')
def accounting(app, db_session):
    """Install a RecordingAccounting integration for the test."""
    integration = RecordingAccounting()
    set_accounting_integration(app, integration)
    return integration


@pytest.fixture(scope='function')
def product_a(db_session):
    product = Product(code="P001", name="Paracetamol 500mg")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_b(db_session):
    product = Product(code="P002", name="Amoxicillin 250mg")
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Healthway Distribution", code="HW")
    db_session.add(supplier)
    db_session.commit()
    return supplier


def line(code="P001", name="Paracetamol 500mg", quantity=10, total_cost="100.00", **extra):
    """Build one purchase order line payload."""
    item = {"code": code, "name": name, "quantity": quantity, "total_cost": total_cost}
    item.update(extra)
    return item


def order_payload(poid="PO-1001", items=None, **extra):
    """Build a purchase order payload with two lines by default."""
    payload = {
        "poid": poid,
        "supplier_name": "Healthway Distribution",
        "bill_number": "INV-778",
        "bill_date": "2024-01-15",
        "items": items if items is not None else [
            line("P001", "Paracetamol 500mg", 10, "100.00"),
            line("P002", "Amoxicillin 250mg", 5, "60.00"),
        ],
    }
    payload.update(extra)
    return payload


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.01"))
