"""
Pytest fixtures for PharmaPOS backend tests.

Provides test database setup, two tenant stores with their users and
batches, session tokens, and helpers that rebuild the sales table to
simulate schema drift.
"""

from datetime import date

import pytest
from sqlalchemy import text

from pharmapos import create_app
from pharmapos.extensions import db
from pharmapos.models import (
    Store, User, Product, Sale,
    ROLE_ADMIN, ROLE_MEDICAL_OWNER, ROLE_CASHIER,
)
from pharmapos.services import schema_service
from pharmapos.services.session_service import create_session


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'SALE_RETRY_BACKOFF': 0.01,
}

# Sales table as shipped by the first release: legacy camelCase
# attribution, no customer address and no doctor fields.
LEGACY_SALES_DDL = """
CREATE TABLE sales (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_no VARCHAR(64) NOT NULL UNIQUE,
    store_id INTEGER NOT NULL,
    "cashierId" INTEGER,
    total_amount_cents INTEGER NOT NULL,
    net_amount_cents INTEGER NOT NULL,
    payment_method VARCHAR(16) NOT NULL DEFAULT 'CASH',
    customer_name VARCHAR(120),
    customer_mobile VARCHAR(32),
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""

# Current columns minus the optional customer address and doctor fields.
REDUCED_SALES_DDL = """
CREATE TABLE sales (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_no VARCHAR(64) NOT NULL UNIQUE,
    store_id INTEGER NOT NULL,
    cashier_id INTEGER,
    total_amount_cents INTEGER NOT NULL,
    net_amount_cents INTEGER NOT NULL,
    payment_method VARCHAR(16) NOT NULL DEFAULT 'CASH',
    customer_name VARCHAR(120),
    customer_mobile VARCHAR(32),
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""

# No attribution column of any kind.
UNATTRIBUTABLE_SALES_DDL = """
CREATE TABLE sales (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    invoice_no VARCHAR(64) NOT NULL UNIQUE,
    store_id INTEGER NOT NULL,
    total_amount_cents INTEGER NOT NULL,
    net_amount_cents INTEGER NOT NULL,
    payment_method VARCHAR(16) NOT NULL DEFAULT 'CASH',
    created_at DATETIME NOT NULL DEFAULT CURRENT_TIMESTAMP
)
"""


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TEST_CONFIG)

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
        schema_service.invalidate()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def store_a(db_session):
    """Create Store A (first tenant)."""
    store = Store(name="Apollo Medicals", license_no="DL-A-001", gst_no="GST-A")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    """Create Store B (second tenant)."""
    store = Store(name="Best Pharmacy", license_no="DL-B-001", gst_no="GST-B")
    db_session.add(store)
    db_session.commit()
    return store


def _make_user(db_session, name, email, role, store_id):
    user = User(name=name, email=email, role=role, store_id=store_id, is_active=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def owner_a(db_session, store_a):
    return _make_user(db_session, "Owner A", "owner_a@apollo.test", ROLE_MEDICAL_OWNER, store_a.id)


@pytest.fixture(scope='function')
def cashier_a(db_session, store_a):
    return _make_user(db_session, "Cashier A", "cashier_a@apollo.test", ROLE_CASHIER, store_a.id)


@pytest.fixture(scope='function')
def cashier_a2(db_session, store_a):
    return _make_user(db_session, "Cashier A2", "cashier_a2@apollo.test", ROLE_CASHIER, store_a.id)


@pytest.fixture(scope='function')
def cashier_b(db_session, store_b):
    return _make_user(db_session, "Cashier B", "cashier_b@best.test", ROLE_CASHIER, store_b.id)


@pytest.fixture(scope='function')
def admin_user(db_session):
    """Admin without a store assignment."""
    return _make_user(db_session, "Admin", "admin@pharmapos.test", ROLE_ADMIN, None)


@pytest.fixture(scope='function')
def storeless_owner(db_session):
    return _make_user(db_session, "Floating Owner", "floating_owner@pharmapos.test", ROLE_MEDICAL_OWNER, None)


@pytest.fixture(scope='function')
def storeless_cashier(db_session):
    return _make_user(db_session, "Floating Cashier", "floating@pharmapos.test", ROLE_CASHIER, None)


def _make_product(db_session, store, name, quantity, cost_cents=500, mrp_cents=1000, **kwargs):
    product = Product(
        store_id=store.id,
        name=name,
        batch_no=kwargs.pop("batch_no", f"B-{name[:3].upper()}"),
        expiry_date=kwargs.pop("expiry_date", date(2027, 12, 31)),
        quantity=quantity,
        cost_price_cents=cost_cents,
        mrp_cents=mrp_cents,
        **kwargs,
    )
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def product_a(db_session, store_a):
    """Paracetamol batch in Store A, 10 on hand."""
    return _make_product(db_session, store_a, "Paracetamol 500mg", 10)


@pytest.fixture(scope='function')
def product_a2(db_session, store_a):
    """Cough syrup batch in Store A, 5 on hand."""
    return _make_product(db_session, store_a, "Cough Syrup", 5, cost_cents=4000, mrp_cents=6550)


@pytest.fixture(scope='function')
def product_b(db_session, store_b):
    """Batch in Store B, 10 on hand."""
    return _make_product(db_session, store_b, "Ibuprofen 400mg", 10)


@pytest.fixture(scope='function')
def auth_headers(db_session):
    """Factory: issue a session for a user and return request headers."""
    def _headers(user):
        _, token = create_session(user.id)
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture(scope='function')
def rebuild_sales_table(db_session):
    """
    Factory: replace the sales table with the given DDL.

    invalidate=False leaves the cached capabilities stale, the way a
    running worker sees a table altered underneath it. The current
    table is restored afterwards.
    """
    def _rebuild(ddl: str, invalidate: bool = True):
        db_session.execute(text("DROP TABLE sales"))
        db_session.execute(text(ddl))
        db_session.commit()
        if invalidate:
            schema_service.invalidate()

    yield _rebuild

    db_session.rollback()
    db_session.execute(text("DROP TABLE IF EXISTS sales"))
    db_session.commit()
    Sale.__table__.create(db_session.connection())
    db_session.commit()
    schema_service.invalidate()
