"""
Pytest fixtures for smart_inventory backend tests.

Provides an in-memory application, a per-test table wipe, and factories for
roles, users, branches, products and opening stock.
"""

from decimal import Decimal

import pytest

from smart_inventory import create_app
from smart_inventory.extensions import db
from smart_inventory.models import (
    Branch,
    InventoryRecord,
    Product,
    Role,
    User,
    ROLE_BRANCH_MANAGER,
    ROLE_SALES_USER,
    ROLE_SUPER_ADMIN,
)
from smart_inventory.services.user_service import create_default_roles


TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'WRITE_RETRY_BACKOFF': 0.0,
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
def roles(db_session):
    return {role.name: role for role in create_default_roles()}


def _make_user(db_session, roles, name, email, role_name, branch_id=None):
    user = User(name=name, email=email, role_id=roles[role_name].id, branch_id=branch_id)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def admin(db_session, roles):
    return _make_user(db_session, roles, "Admin", "admin@example.com", ROLE_SUPER_ADMIN)


@pytest.fixture(scope='function')
def branch_a(db_session):
    branch = Branch(name="Main Street", address="1 Main Street")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def branch_b(db_session):
    branch = Branch(name="Harbor", address="9 Harbor Road")
    db_session.add(branch)
    db_session.commit()
    return branch


@pytest.fixture(scope='function')
def manager(db_session, roles, branch_a):
    user = _make_user(db_session, roles, "Manager", "manager@example.com", ROLE_BRANCH_MANAGER)
    branch_a.manager_id = user.id
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def seller(db_session, roles, branch_b):
    return _make_user(db_session, roles, "Seller", "seller@example.com", ROLE_SALES_USER, branch_id=branch_b.id)


@pytest.fixture(scope='function')
def make_product(db_session):
    counter = {"n": 0}

    def _make(
        name=None,
        sale_price="20.00",
        tax_percentage="10",
        cost_price="12.00",
        is_active=True,
        sku=None,
    ):
        counter["n"] += 1
        product = Product(
            name=name or f"Product {counter['n']}",
            sku=sku or f"SKU-{counter['n']:04d}",
            cost_price=Decimal(cost_price),
            sale_price=Decimal(sale_price),
            tax_percentage=Decimal(tax_percentage),
            is_active=is_active,
        )
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture(scope='function')
def product(make_product):
    """sale_price 20.00, tax 10%."""
    return make_product(name="Widget", sku="WID-001")


@pytest.fixture(scope='function')
def set_stock(db_session):
    """Seed an inventory record directly, bypassing the ledger."""
    def _set(branch, product, quantity):
        record = InventoryRecord(branch_id=branch.id, product_id=product.id, quantity=quantity)
        db_session.add(record)
        db_session.commit()
        return record

    return _set


def actor_headers(user) -> dict:
    """Helper to create acting-user headers."""
    return {'X-User-Id': str(user.id)}


@pytest.fixture(scope='function')
def headers_for():
    return actor_headers
