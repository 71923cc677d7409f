"""
Pytest fixtures for marketplace backend tests.

Provides test database setup, catalogue/purchasing factories, an admin
session and the Flask test client.
"""

import pytest

from marketplace import create_app
from marketplace.extensions import db
from marketplace.services import (
    catalog_service,
    purchase_service,
    registration_service,
    vendor_service,
)
from marketplace.services.auth_service import create_admin


ADMIN_PASSWORD = "Password123!"
PARTNER_PASSWORD = "secret99"


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'BCRYPT_ROUNDS': 4,
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
def admin(db_session):
    return create_admin("admin", "admin@luxe.local", ADMIN_PASSWORD)


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(get_auth_token(client, "admin", ADMIN_PASSWORD))


@pytest.fixture(scope='function')
def brand(db_session):
    return catalog_service.create_brand("Maison Test")


@pytest.fixture(scope='function')
def category(db_session):
    return catalog_service.create_category("Handbags")


@pytest.fixture(scope='function')
def vendor(db_session):
    return vendor_service.create_vendor(name="Atelier Supplies")


@pytest.fixture(scope='function')
def make_product(db_session, brand, category):
    """Factory: make_product("SKU-1", cost_price=100, ...)"""
    def _make(sku, **fields):
        data = {"sku": sku, "name": sku.title(), "brand_id": brand.id, "category_id": category.id}
        data.update(fields)
        return catalog_service.create_product(data)
    return _make


@pytest.fixture(scope='function')
def make_bill(db_session, vendor):
    """Factory: make_bill([(product, quantity, cost_price), ...], **bill_fields)"""
    def _make(lines, **fields):
        items = []
        for line in lines:
            product, quantity, cost = line[:3]
            item = {"product_id": product.id, "quantity": quantity, "cost_price": cost}
            if len(line) > 3:
                item["final_cost_price"] = line[3]
            items.append(item)
        return purchase_service.create_purchase_bill(vendor_id=vendor.id, items=items, **fields)
    return _make


@pytest.fixture(scope='function')
def make_partner(db_session):
    """Factory: make_partner("reseller", "Ravi Kumar", approved=True)"""
    counter = {"n": 0}

    def _make(partner_type, name, *, approved=False, **extra):
        counter["n"] += 1
        n = counter["n"]
        partner = registration_service.register_partner(
            partner_type,
            name=name,
            email=f"partner{n}@example.com",
            contact_number=f"98765432{n:02d}",
            password=PARTNER_PASSWORD,
            **extra,
        )
        if approved:
            partner = registration_service.approve(partner_type, partner.id)
        return partner
    return _make


@pytest.fixture(scope='function')
def partner_headers(client):
    """Factory: partner_headers("reseller", partner.username) -> Authorization headers"""
    def _headers(partner_type, identifier):
        return auth_headers(get_partner_token(client, partner_type, identifier))
    return _headers


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get an admin auth token."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def get_partner_token(client, partner_type: str, identifier: str, password: str = PARTNER_PASSWORD) -> str:
    response = client.post(f'/api/partners/{partner_type}/login', json={
        'identifier': identifier,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
