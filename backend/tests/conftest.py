"""
Pytest fixtures for dealership backend tests.

Provides an in-memory application per test, seeded accounts and vehicles,
and helpers for issuing codes and signing in through the API.
"""

import pytest

from dealership import create_app
from dealership.extensions import db
from dealership.models import User, Vehicle
from dealership.models.auth import ROLE_CUSTOMER
from dealership.models.otp import OTP_PURPOSE_LOGIN, OTP_PURPOSE_PURCHASE
from dealership.services import otp_service
from dealership.services.auth_service import hash_password
from dealership.services.user_service import create_admin


PASSWORD = "Password123!"

TEST_CONFIG = {
    'TESTING': True,
    'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
    'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    'OTP_EXPOSE_CODE': True,
    'BCRYPT_ROUNDS': 4,
}


@pytest.fixture(scope='function')
def app():
    """Fresh application and schema for each test."""
    app = create_app(TEST_CONFIG)

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


def make_customer(email: str, full_name: str = "Test Buyer") -> User:
    user = User(
        email=email,
        password_hash=hash_password(PASSWORD),
        role=ROLE_CUSTOMER,
        full_name=full_name,
        is_active=True,
    )
    db.session.add(user)
    db.session.commit()
    return user


def make_vehicle(**overrides) -> Vehicle:
    fields = {
        "make": "Toyota",
        "model": "Camry",
        "year": 2021,
        "price_cents": 8_800_000,
        "color": "White",
    }
    fields.update(overrides)
    vehicle = Vehicle(is_available=True, **fields)
    db.session.add(vehicle)
    db.session.commit()
    return vehicle


@pytest.fixture(scope='function')
def admin(app):
    return create_admin("admin@dealer.com", PASSWORD, full_name="Admin User")


@pytest.fixture(scope='function')
def customer(app):
    return make_customer("buyer@example.com")


@pytest.fixture(scope='function')
def other_customer(app):
    return make_customer("second@example.com", full_name="Second Buyer")


@pytest.fixture(scope='function')
def vehicle(app):
    return make_vehicle()


def purchase_code(user: User, vehicle: Vehicle) -> str:
    """Issue a PURCHASE code bound to the vehicle."""
    return otp_service.issue_otp(user.email, OTP_PURPOSE_PURCHASE, vehicle.id)


def login(client, email: str, password: str = PASSWORD) -> str:
    """Sign in through the API (LOGIN code is echoed in test config)."""
    resp = client.post('/api/auth/request-otp', json={'email': email, 'purpose': OTP_PURPOSE_LOGIN})
    assert resp.status_code == 200, resp.get_json()
    code = resp.get_json()['otp_code']

    resp = client.post('/api/auth/login', json={
        'email': email,
        'password': password,
        'otp_code': code,
    })
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()['token']


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def admin_headers(client, admin):
    return auth_headers(login(client, admin.email))


@pytest.fixture(scope='function')
def customer_headers(client, customer):
    return auth_headers(login(client, customer.email))
