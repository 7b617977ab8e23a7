"""
Pytest fixtures for stockroom backend tests.

Provides test database setup, the bootstrap seed, and authenticated headers
for an administrator and a basic user.
"""

import pytest
from stockroom import create_app
from stockroom.extensions import db
from stockroom.models import Product
from stockroom.services import user_service
from stockroom.services.bootstrap_service import bootstrap_defaults

ADMIN_PASSWORD = "admin123"
BASIC_PASSWORD = "maria1234"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'BCRYPT_ROUNDS': 4,
    'BOOTSTRAP_ON_STARTUP': False,
    'ADMIN_USERNAME': 'admin',
    'ADMIN_PASSWORD': ADMIN_PASSWORD,
    'ADMIN_DISPLAY_NAME': 'Administrator',
    'LOGIN_MAX_FAILED_ATTEMPTS': 5,
    'LOGIN_LOCKOUT_MINUTES': 15,
    'MAIL_SERVER': None,
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
        db.session.expunge_all()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def seed(db_session):
    """
    System access levels, the administrator and one basic user.

    The basic user is on the "User" level: no access or level management,
    no product deletion.
    """
    bootstrap_defaults()
    basic = user_service.create_user(
        username="maria",
        password=BASIC_PASSWORD,
        display_name="Maria Silva",
        email="maria@example.com",
    )
    return {"basic_id": basic.id}


@pytest.fixture(scope='function')
def admin_headers(client, seed):
    return auth_headers(get_auth_token(client, "admin", ADMIN_PASSWORD))


@pytest.fixture(scope='function')
def basic_headers(client, seed):
    return auth_headers(get_auth_token(client, "maria", BASIC_PASSWORD))


@pytest.fixture(scope='function')
def product(db_session):
    """A product with 10 units on hand and a minimum of 3."""
    p = Product(
        name="Arroz 5kg",
        barcode="7891234567890",
        unit_price_cents=2599,
        quantity_on_hand=10,
        minimum_stock=3,
    )
    db_session.add(p)
    db_session.commit()
    return p


def get_auth_token(client, username: str, password: str) -> str:
    """Helper to get auth token for a user."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}
