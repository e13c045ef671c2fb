"""
Pytest fixtures for marketplace backend tests.

Provides test database setup, tenant fixtures (two merchants on the seeded
plans), a supplier with a global catalog product, and the test client.
"""

import pytest
from app import create_app
from app.extensions import db
from app.models import Supplier, User
from app.services import auth_service, plan_service, products_service

PASSWORD = "Password123!"
THRESHOLD_CENTS = 1_000_000
WEBHOOK_SECRET = "whsec-test"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'FREE_FOR_LIFE_THRESHOLD_CENTS': THRESHOLD_CENTS,
        'BILLING_WEBHOOK_SECRET': WEBHOOK_SECRET,
        'SHOPIFY_API_KEY': 'test-key',
        'SHOPIFY_API_SECRET': 'test-secret',
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
def plans(db_session):
    """Seed the launch tiers (free, starter, growth, professional, millionaire)."""
    plan_service.seed_default_plans()
    return {p.slug: p for p in plan_service.list_plans()}


@pytest.fixture(scope='function')
def supplier(db_session):
    supplier = Supplier(name="Acme Wholesale", type="custom")
    db_session.add(supplier)
    db_session.commit()
    return supplier


@pytest.fixture(scope='function')
def catalog_product(db_session, supplier):
    """Global catalog product costing $10.00."""
    return products_service.create_global_product(
        patch={
            "title": "Wireless Earbuds",
            "description": "Bluetooth 5.3 earbuds",
            "category": "Audio",
            "supplier_sku": "EAR-001",
            "supplier_price_cents": 1000,
            "inventory_quantity": 50,
        },
        supplier_id=supplier.id,
    )


@pytest.fixture(scope='function')
def second_catalog_product(db_session, supplier):
    """Global catalog product costing $15.00."""
    return products_service.create_global_product(
        patch={
            "title": "Phone Stand",
            "category": "Accessories",
            "supplier_sku": "STAND-002",
            "supplier_price_cents": 1500,
            "inventory_quantity": 20,
        },
        supplier_id=supplier.id,
    )


def make_merchant(name: str, email: str, plan_slug: str | None = None):
    """Register a merchant with its owner user and trial subscription."""
    return auth_service.register_merchant(
        business_name=name,
        owner_email=email,
        owner_name=f"{name} Owner",
        password=PASSWORD,
        plan_slug=plan_slug,
    )


@pytest.fixture(scope='function')
def merchant_a(plans):
    """Merchant A (first tenant) on the free plan."""
    merchant, _owner = make_merchant("Acme Store", "owner@acme.com")
    return merchant


@pytest.fixture(scope='function')
def merchant_b(plans):
    """Merchant B (second tenant) on the free plan."""
    merchant, _owner = make_merchant("Beta Shop", "owner@beta.com")
    return merchant


@pytest.fixture(scope='function')
def owner_a(db_session, merchant_a):
    return db_session.query(User).filter_by(email="owner@acme.com").first()


@pytest.fixture(scope='function')
def admin_user(db_session):
    return auth_service.create_user("admin@platform.com", "Platform Admin", PASSWORD, role="admin")


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
