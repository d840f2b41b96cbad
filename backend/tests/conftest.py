"""
Pytest fixtures for gstbill backend tests.

Provides the test database, one user per role, stocked items and an
authenticated test client.
"""

from decimal import Decimal

import pytest

from gstbill import create_app
from gstbill.extensions import db
from gstbill.models import Customer, Item, Supplier, User
from gstbill.services import session_service, stock_service
from gstbill.services.auth_service import hash_password
from gstbill.services.session_service import SessionContext

TEST_PASSWORD = "Password123!"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
        'BUSINESS_GSTIN': '',
        'BUSINESS_STATE_CODE': '27',
        'SEQUENCE_START': 0,
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
def make_user(db_session):
    """Factory: make_user("billing_staff") -> committed active User."""
    def _make(role, username=None, is_active=True):
        user = User(
            username=username or f"{role}_user",
            display_name=role.replace("_", " ").title(),
            role=role,
            password_hash=hash_password(TEST_PASSWORD),
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        return user
    return _make


@pytest.fixture(scope='function')
def admin_user(make_user):
    return make_user("admin")


@pytest.fixture(scope='function')
def superadmin_user(make_user):
    return make_user("superadmin")


@pytest.fixture(scope='function')
def billing_user(make_user):
    return make_user("billing_staff")


@pytest.fixture(scope='function')
def purchase_user(make_user):
    return make_user("purchase_staff")


@pytest.fixture(scope='function')
def auditor_user(make_user):
    return make_user("readonly_auditor")


@pytest.fixture(scope='function')
def admin(admin_user):
    """Actor context for service calls."""
    return SessionContext(user=admin_user)


@pytest.fixture(scope='function')
def biller(billing_user):
    return SessionContext(user=billing_user)


@pytest.fixture(scope='function')
def buyer(purchase_user):
    return SessionContext(user=purchase_user)


@pytest.fixture(scope='function')
def auditor(auditor_user):
    return SessionContext(user=auditor_user)


@pytest.fixture(scope='function')
def make_item(db_session):
    """
    Factory for items. stock > 0 is booked as opening stock so the ledger
    explains the balance.
    """
    counter = {"n": 0}

    def _make(
        name="MCB 32A",
        *,
        stock=0,
        selling_price="1000.00",
        purchase_price="700.00",
        gst_percent="18",
        hsn_code="8536",
        sku=None,
        is_active=True,
    ):
        counter["n"] += 1
        item = Item(
            sku=sku or f"SKU-{counter['n']:03d}",
            name=name,
            unit="pcs",
            hsn_code=hsn_code,
            selling_price_paise=int(Decimal(selling_price) * 100),
            purchase_price_paise=int(Decimal(purchase_price) * 100),
            gst_percent=Decimal(gst_percent),
            current_stock=0,
            min_stock_level=0,
            is_active=is_active,
        )
        db_session.add(item)
        db_session.commit()
        if stock:
            stock_service.set_opening_stock(item.id, stock)
        return item
    return _make


@pytest.fixture(scope='function')
def customer(db_session):
    """Registered customer in Karnataka (state 29); the business is in state 27."""
    party = Customer(name="Acme Traders", gstin="29ABCDE1234F1Z5", state_code="29")
    db_session.add(party)
    db_session.commit()
    return party


@pytest.fixture(scope='function')
def local_customer(db_session):
    party = Customer(name="Local Electricals", gstin="27ABCDE1234F1Z5", state_code="27")
    db_session.add(party)
    db_session.commit()
    return party


@pytest.fixture(scope='function')
def supplier(db_session):
    party = Supplier(name="Havells Distributor", gstin="27AAACH1234K1Z2", state_code="27")
    db_session.add(party)
    db_session.commit()
    return party


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Factory: auth_headers(user) -> Authorization header for a fresh session."""
    def _headers(user):
        _, token = session_service.create_session(user)
        return {"Authorization": f"Bearer {token}"}
    return _headers
