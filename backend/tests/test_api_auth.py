"""
Authentication API tests.

Verifies:
- Code issuance, echo only when enabled, PURCHASE codes need a vehicle
- OTP-gated registration and login
- Bearer sessions: whoami, logout, unauthenticated access
"""

import pytest

from dealership.extensions import db
from dealership.models import OtpToken, SecurityEvent, SessionToken, User

from conftest import PASSWORD, auth_headers, login


def _request_code(client, email, purpose, **extra):
    resp = client.post('/api/auth/request-otp', json={'email': email, 'purpose': purpose, **extra})
    assert resp.status_code == 200, resp.get_json()
    return resp.get_json()['otp_code']


class TestRequestOtp:
    def test_code_echoed_when_enabled(self, client):
        code = _request_code(client, 'new@example.com', 'REGISTER')
        assert len(code) == 6

    def test_code_hidden_by_default(self, app, client):
        app.config['OTP_EXPOSE_CODE'] = False
        resp = client.post('/api/auth/request-otp', json={'email': 'new@example.com', 'purpose': 'LOGIN'})
        assert resp.status_code == 200
        assert 'otp_code' not in resp.get_json()

    def test_purpose_case_insensitive(self, client):
        _request_code(client, 'new@example.com', 'register')

    @pytest.mark.parametrize(
        "body",
        [
            {'purpose': 'LOGIN'},
            {'email': '  ', 'purpose': 'LOGIN'},
            {'email': 'a@b.com', 'purpose': 'SHOPPING'},
            {'email': 'a@b.com', 'purpose': 'PURCHASE'},
            {'email': 'a@b.com', 'purpose': 'PURCHASE', 'vehicle_id': 0},
        ],
    )
    def test_input_errors(self, client, body):
        resp = client.post('/api/auth/request-otp', json=body)
        assert resp.status_code == 400
        assert resp.get_json()['code'] == 'INPUT_ERROR'

    def test_purchase_code_for_unknown_vehicle(self, client):
        resp = client.post('/api/auth/request-otp', json={
            'email': 'a@b.com', 'purpose': 'PURCHASE', 'vehicle_id': 4242,
        })
        assert resp.status_code == 404
        assert resp.get_json()['code'] == 'NOT_FOUND'
        assert db.session.query(OtpToken).count() == 0

    def test_non_json_body(self, client):
        resp = client.post('/api/auth/request-otp', data='email=x', content_type='text/plain')
        assert resp.status_code == 400


class TestValidateOtp:
    def test_check_without_consuming_refused(self, client):
        code = _request_code(client, 'a@b.com', 'LOGIN')
        body = {'email': 'a@b.com', 'purpose': 'LOGIN', 'otp_code': code}

        resp = client.post('/api/auth/validate-otp', json={**body, 'consume': False})
        assert resp.status_code == 400
        assert resp.get_json()['code'] == 'INPUT_ERROR'

        otp = db.session.query(OtpToken).one()
        assert otp.consumed is False

    def test_single_use(self, client):
        code = _request_code(client, 'a@b.com', 'LOGIN')
        body = {'email': 'a@b.com', 'purpose': 'LOGIN', 'otp_code': code}

        resp = client.post('/api/auth/validate-otp', json=body)
        assert resp.get_json() == {'valid': True}

        resp = client.post('/api/auth/validate-otp', json=body)
        assert resp.get_json() == {'valid': False}

    def test_purchase_binding(self, client, vehicle):
        code = _request_code(client, 'a@b.com', 'PURCHASE', vehicle_id=vehicle.id)
        body = {'email': 'a@b.com', 'purpose': 'PURCHASE', 'otp_code': code}

        resp = client.post('/api/auth/validate-otp', json={**body, 'vehicle_id': vehicle.id + 1})
        assert resp.get_json() == {'valid': False}

        resp = client.post('/api/auth/validate-otp', json={**body, 'vehicle_id': vehicle.id})
        assert resp.get_json() == {'valid': True}


class TestRegister:
    def test_register_and_sign_in(self, client):
        code = _request_code(client, 'New@Example.com', 'REGISTER')
        resp = client.post('/api/auth/register', json={
            'email': 'New@Example.com',
            'password': PASSWORD,
            'full_name': 'New Buyer',
            'otp_code': code,
        })
        assert resp.status_code == 201, resp.get_json()
        data = resp.get_json()
        assert data['role'] == 'CUSTOMER'
        assert data['email'] == 'new@example.com'
        assert data['token']

        resp = client.get('/api/whoami', headers=auth_headers(data['token']))
        assert resp.status_code == 200
        assert resp.get_json()['email'] == 'new@example.com'

    def test_invalid_code(self, client):
        _request_code(client, 'new@example.com', 'REGISTER')
        resp = client.post('/api/auth/register', json={
            'email': 'new@example.com', 'password': PASSWORD, 'otp_code': '000000',
        })
        assert resp.status_code == 400
        assert resp.get_json()['code'] == 'INVALID_OTP'
        assert db.session.query(User).count() == 0

    def test_duplicate_email_conflict_keeps_code(self, client, customer):
        code = _request_code(client, customer.email, 'REGISTER')
        body = {'email': customer.email, 'password': PASSWORD, 'otp_code': code}

        resp = client.post('/api/auth/register', json=body)
        assert resp.status_code == 409
        assert resp.get_json()['code'] == 'CONFLICT'

        otp = db.session.query(OtpToken).filter_by(purpose='REGISTER').one()
        assert otp.consumed is False

    def test_weak_password(self, client):
        code = _request_code(client, 'new@example.com', 'REGISTER')
        resp = client.post('/api/auth/register', json={
            'email': 'new@example.com', 'password': 'short', 'otp_code': code,
        })
        assert resp.status_code == 400
        assert resp.get_json()['code'] == 'INPUT_ERROR'


class TestLogin:
    def test_login_requires_password_and_code(self, client, customer):
        token = login(client, customer.email)
        assert token

        events = db.session.query(SecurityEvent).filter_by(event_type='LOGIN_SUCCESS').all()
        assert len(events) == 1
        assert events[0].user_id == customer.id
        assert db.session.get(User, customer.id).last_login_at is not None

    def test_wrong_password(self, client, customer):
        code = _request_code(client, customer.email, 'LOGIN')
        resp = client.post('/api/auth/login', json={
            'email': customer.email, 'password': 'Wrong123!!', 'otp_code': code,
        })
        assert resp.status_code == 401
        assert resp.get_json()['code'] == 'NOT_AUTHORIZED'
        assert db.session.query(SecurityEvent).filter_by(event_type='LOGIN_FAILED').count() == 1

    def test_unknown_email(self, client):
        resp = client.post('/api/auth/login', json={
            'email': 'nobody@example.com', 'password': PASSWORD, 'otp_code': '123456',
        })
        assert resp.status_code == 401

    def test_wrong_code(self, client, customer):
        _request_code(client, customer.email, 'LOGIN')
        resp = client.post('/api/auth/login', json={
            'email': customer.email, 'password': PASSWORD, 'otp_code': '000000',
        })
        assert resp.status_code == 400
        assert resp.get_json()['code'] == 'INVALID_OTP'

    def test_missing_fields(self, client):
        resp = client.post('/api/auth/login', json={'email': 'a@b.com'})
        assert resp.status_code == 400


class TestSessions:
    def test_whoami_requires_token(self, client):
        assert client.get('/api/whoami').status_code == 401
        assert client.get('/api/whoami', headers=auth_headers('bogus')).status_code == 401

    def test_whoami(self, client, customer_headers, customer):
        resp = client.get('/api/whoami', headers=customer_headers)
        assert resp.status_code == 200
        data = resp.get_json()
        assert data['id'] == customer.id
        assert data['role'] == 'CUSTOMER'

    def test_logout_revokes(self, client, customer_headers):
        resp = client.post('/api/auth/logout', headers=customer_headers)
        assert resp.status_code == 200

        assert client.get('/api/whoami', headers=customer_headers).status_code == 401
        session = db.session.query(SessionToken).one()
        assert session.is_revoked is True
        assert session.revoked_reason == 'User logout'


def test_health(client):
    resp = client.get('/health')
    assert resp.status_code == 200
    assert resp.get_json()['status'] == 'healthy'


def test_cors_allowed_origin(client):
    resp = client.get('/health', headers={'Origin': 'http://localhost:5173'})
    assert resp.headers['Access-Control-Allow-Origin'] == 'http://localhost:5173'

    resp = client.get('/health', headers={'Origin': 'http://evil.example'})
    assert 'Access-Control-Allow-Origin' not in resp.headers
