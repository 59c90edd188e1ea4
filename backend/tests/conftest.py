"""
Pytest fixtures for coffee finance backend tests.

Provides test database setup, seed helpers for payable batches, and test client.
"""

from datetime import timedelta
from types import SimpleNamespace

import pytest

from coffee_finance import create_app
from coffee_finance.extensions import db
from coffee_finance.services import advance_service, cash_service, intake_service, pricing_service
from coffee_finance.time_utils import utcnow


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PAYMENT_RETRY_BACKOFF': 0,
        'SMS_ENABLED': True,
        'SMS_GATEWAY': None,
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
def supplier(db_session):
    """Robusta supplier with a phone number (payment SMS enabled)."""
    return intake_service.register_supplier("KATO", "Kato Farm", phone="+256700000001")


@pytest.fixture(scope='function')
def make_payable(db_session, supplier):
    """
    Factory: receive, grade and price-approve a batch.

    Returns a namespace with batch_number, batch_id, assessment_id,
    supplier_id and amount_ugx (kilograms x price).
    """
    def _make(batch_number="CF-001", kilograms=100, price_ugx=2000, supplier_id=None):
        supplier_id = supplier_id or supplier.id
        batch = intake_service.receive_batch(batch_number, supplier_id, "robusta", kilograms, bags=2,
                                             received_by_user_id=1)
        assessment = intake_service.submit_assessment(
            batch.id, assessed_by_user_id=1, suggested_price_ugx=price_ugx, moisture=12.5, outturn=80,
        )
        decision = pricing_service.approve_price(assessment.id, price_ugx, approver_user_id=2)
        return SimpleNamespace(
            batch_number=decision.batch_number,
            batch_id=batch.id,
            assessment_id=assessment.id,
            supplier_id=supplier_id,
            amount_ugx=decision.payable_amount_ugx,
        )

    return _make


@pytest.fixture(scope='function')
def fund_cash(db_session):
    """Factory: put cash into the float."""
    def _fund(amount_ugx):
        return cash_service.record_deposit(amount_ugx, actor="Test Treasurer", reference="SEED")

    return _fund


@pytest.fixture(scope='function')
def make_advance(db_session, supplier):
    """Factory: issue an advance, optionally backdated by days_ago."""
    def _make(amount_ugx, days_ago=0, supplier_id=None):
        return advance_service.issue_advance(
            supplier_id or supplier.id,
            amount_ugx,
            issued_by_user_id=9,
            purpose="Harvest advance",
            issued_at=utcnow() - timedelta(days=days_ago),
        )

    return _make
