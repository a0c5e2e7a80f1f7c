"""
Pytest fixtures for POS backend tests.

Provides test database setup, users per role, products, customers, and test client.
"""

import pytest
from posapi import create_app
from posapi.extensions import db
from posapi.models import Customer
from posapi.services import session_service
from posapi.services.auth_service import create_user
from posapi.services.products_service import create_product

TEST_PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'BCRYPT_ROUNDS': 4,
    'LOYALTY_ASYNC': False,
    'DB_RETRY_ATTEMPTS': 2,
}


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

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return create_user(email="admin@test.local", name="Admin", password=TEST_PASSWORD, role="admin")


@pytest.fixture(scope='function')
def manager_user(db_session):
    return create_user(email="manager@test.local", name="Manager", password=TEST_PASSWORD, role="manager")


@pytest.fixture(scope='function')
def cashier_user(db_session):
    return create_user(email="cashier@test.local", name="Cashier", password=TEST_PASSWORD, role="cashier")


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory: make_product(sku, price_cents=..., stock=..., is_active=...)."""
    def _make(sku: str, *, price_cents: int = 1000, stock: int = 100, is_active: bool = True, name: str | None = None):
        return create_product(
            patch={"sku": sku, "name": name or f"Product {sku}", "price_cents": price_cents, "is_active": is_active},
            initial_stock=stock,
        )
    return _make


@pytest.fixture(scope='function')
def customer(db_session):
    c = Customer(name="Loyal Customer", email="loyal@test.local")
    db_session.add(c)
    db_session.commit()
    return c


def _headers_for(user) -> dict:
    _, token = session_service.create_session(user_id=user.id)
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture(scope='function')
def manager_headers(manager_user):
    return _headers_for(manager_user)


@pytest.fixture(scope='function')
def cashier_headers(cashier_user):
    return _headers_for(cashier_user)
