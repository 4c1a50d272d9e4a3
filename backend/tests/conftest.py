"""
Pytest fixtures for the back office tests.

Provides an in-memory database, two tenants (A and B) with stores, users,
stock and an open cash session each, plus Principal and auth-header helpers.

Fixture data is committed before the test body runs: services open their
transactions with BEGIN IMMEDIATE, which SQLite refuses while uncommitted
writes are pending on the connection.
"""

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import (
    Tenant, Store, StoreMembership, User, Product, StoreProduct, CashSession, SESSION_STATUS_OPEN
)
from backoffice.principal import Principal, ROLE_ADMIN, ROLE_USER, FEATURE_FAST_SERVICE
from backoffice.services.session_service import create_session


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


def principal_for(user: User) -> Principal:
    """Build the Principal the auth boundary would produce for a user."""
    return Principal(
        user_id=user.id,
        email=user.email,
        role=user.role,
        tenant_id=user.tenant_id,
        tenant_features=user.tenant.feature_set,
    )


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def add_store_product(db_session, store, name, price_cents, stock, stock_threshold=1):
    product = Product(tenant_id=store.tenant_id, name=name, base_price_cents=price_cents)
    db_session.add(product)
    db_session.flush()
    store_product = StoreProduct(
        store_id=store.id,
        product_id=product.id,
        price_cents=price_cents,
        stock=stock,
        stock_threshold=stock_threshold,
    )
    db_session.add(store_product)
    db_session.commit()
    return store_product


# =============================================================================
# TENANT A
# =============================================================================

@pytest.fixture(scope='function')
def tenant_a(db_session):
    """Tenant A (fast service OFF)."""
    tenant = Tenant(name="Tenant A - Celulares Lima")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def store_a(db_session, tenant_a):
    store = Store(tenant_id=tenant_a.id, name="Store A1", address="Av. Lima 100", phone="014445555")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_a2(db_session, tenant_a, store_a):
    """Second store of tenant A; nobody but the admin is a member."""
    store = Store(tenant_id=tenant_a.id, name="Store A2")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def admin_a(db_session, tenant_a, store_a):
    user = User(tenant_id=tenant_a.id, name="Admin A", username="admin_a", email="admin@a.test", role=ROLE_ADMIN)
    db_session.add(user)
    db_session.flush()
    db_session.add(StoreMembership(store_id=store_a.id, user_id=user.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def cashier_a(db_session, tenant_a, store_a):
    """USER member of store A1."""
    user = User(tenant_id=tenant_a.id, name="Cashier A", username="cashier_a", email="cashier@a.test", role=ROLE_USER)
    db_session.add(user)
    db_session.flush()
    db_session.add(StoreMembership(store_id=store_a.id, user_id=user.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def outsider_a(db_session, tenant_a):
    """USER of tenant A without any store membership."""
    user = User(tenant_id=tenant_a.id, name="Outsider A", username="outsider_a", email="outsider@a.test", role=ROLE_USER)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_principal(admin_a):
    return principal_for(admin_a)


@pytest.fixture(scope='function')
def cashier_principal(cashier_a):
    return principal_for(cashier_a)


@pytest.fixture(scope='function')
def outsider_principal(outsider_a):
    return principal_for(outsider_a)


@pytest.fixture(scope='function')
def fast_service_principal(db_session, tenant_a, cashier_a):
    """Cashier of tenant A with the FASTSERVICE feature switched on."""
    tenant_a.feature_set = {FEATURE_FAST_SERVICE}
    db_session.commit()
    return principal_for(cashier_a)


@pytest.fixture(scope='function')
def phone_case(db_session, store_a):
    """StoreProduct in store A1: 10.00 each, 5 in stock."""
    return add_store_product(db_session, store_a, "Phone case", price_cents=1000, stock=5, stock_threshold=2)


@pytest.fixture(scope='function')
def charger(db_session, store_a):
    """StoreProduct in store A1: 25.00 each, 3 in stock."""
    return add_store_product(db_session, store_a, "USB-C charger", price_cents=2500, stock=3)


@pytest.fixture(scope='function')
def open_session(db_session, store_a, cashier_a):
    """OPEN cash session of store A1 with a 100.00 float."""
    cash_session = CashSession(
        store_id=store_a.id,
        user_id=cashier_a.id,
        status=SESSION_STATUS_OPEN,
        opening_amount_cents=10000,
    )
    db_session.add(cash_session)
    db_session.commit()
    return cash_session


@pytest.fixture(scope='function')
def cashier_token(db_session, cashier_a):
    _, token = create_session(cashier_a.id)
    return token


@pytest.fixture(scope='function')
def admin_token(db_session, admin_a):
    _, token = create_session(admin_a.id)
    return token


# =============================================================================
# TENANT B
# =============================================================================

@pytest.fixture(scope='function')
def tenant_b(db_session):
    tenant = Tenant(name="Tenant B - Repuestos Cusco")
    db_session.add(tenant)
    db_session.commit()
    return tenant


@pytest.fixture(scope='function')
def store_b(db_session, tenant_b):
    store = Store(tenant_id=tenant_b.id, name="Store B1")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def admin_b(db_session, tenant_b, store_b):
    user = User(tenant_id=tenant_b.id, name="Admin B", username="admin_b", email="admin@b.test", role=ROLE_ADMIN)
    db_session.add(user)
    db_session.flush()
    db_session.add(StoreMembership(store_id=store_b.id, user_id=user.id))
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin_b_principal(admin_b):
    return principal_for(admin_b)


@pytest.fixture(scope='function')
def product_b(db_session, store_b):
    return add_store_product(db_session, store_b, "Screen protector", price_cents=1500, stock=8)


@pytest.fixture(scope='function')
def session_b(db_session, store_b, admin_b):
    cash_session = CashSession(
        store_id=store_b.id,
        user_id=admin_b.id,
        status=SESSION_STATUS_OPEN,
        opening_amount_cents=5000,
    )
    db_session.add(cash_session)
    db_session.commit()
    return cash_session


# =============================================================================
# HELPERS AS FIXTURES
# =============================================================================

@pytest.fixture(scope='function')
def principal_of():
    """principal_of(user) -> Principal, re-read from the current tenant row."""
    return principal_for


@pytest.fixture(scope='function')
def make_store_product(db_session):
    def _make(store, name, price_cents, stock, stock_threshold=1):
        return add_store_product(db_session, store, name, price_cents, stock, stock_threshold)
    return _make


@pytest.fixture(scope='function')
def cashier_headers(cashier_token):
    return auth_headers(cashier_token)


@pytest.fixture(scope='function')
def admin_headers(admin_token):
    return auth_headers(admin_token)
