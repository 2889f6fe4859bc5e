"""
Pytest fixtures for stockflow backend and client tests.

Provides test database setup, tenant fixtures, payment/notification
factories, and the Flask test client.
"""

from datetime import datetime

import pytest
from stockflow import create_app
from stockflow.extensions import db
from stockflow.models import Organization, Payment, Notification


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
def org_a(db_session):
    """Create Organization A (first tenant)."""
    org = Organization(name="Org A - Acme Corp", code="ACME", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def org_b(db_session):
    """Create Organization B (second tenant)."""
    org = Organization(name="Org B - Beta Inc", code="BETA", is_active=True)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def inactive_org(db_session):
    """Create a deactivated organization."""
    org = Organization(name="Org C - Closed", code="CLOSED", is_active=False)
    db_session.add(org)
    db_session.commit()
    return org


@pytest.fixture(scope='function')
def make_payment(db_session):
    """
    Factory inserting a payment row directly (any status, no state machine).

    Numbers are PAG-2024-0001, PAG-2024-0002, ... unless given.
    """
    counter = {"n": 0}

    def _make(org, **overrides):
        counter["n"] += 1
        values = dict(
            org_id=org.id,
            payment_number=f"PAG-2024-{counter['n']:04d}",
            invoice_id="INV-1",
            customer_id="CUST-1",
            customer_name="Ferreteria El Tornillo",
            invoice_number="FAC-0001",
            amount=1_000_000,
            method="BANK_TRANSFER",
            status="PENDING",
            payment_date=datetime(2024, 5, 1, 10, 0, 0),
        )
        values.update(overrides)
        payment = Payment(**values)
        db_session.add(payment)
        db_session.commit()
        return payment

    return _make


@pytest.fixture(scope='function')
def make_notification(db_session):
    """Factory inserting a notification row directly."""

    def _make(org, **overrides):
        values = dict(
            org_id=org.id,
            type="INFO",
            title="Aviso",
            message="Mensaje de prueba",
            priority="MEDIUM",
            read=False,
        )
        values.update(overrides)
        notification = Notification(**values)
        db_session.add(notification)
        db_session.commit()
        return notification

    return _make


def tenant_headers(org) -> dict:
    """Helper to create tenant headers for API requests."""
    return {'X-Org-Id': str(org.id)}
