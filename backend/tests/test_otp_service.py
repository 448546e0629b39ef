"""
One-time code ledger tests.

Verifies:
- Codes validate exactly once
- PURCHASE codes are bound to one vehicle
- Expired, wrong-purpose and wrong-subject codes fail with no side effect
- Codes never reach the audit trail or the log
"""

import logging
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from dealership.extensions import db
from dealership.models import OtpToken, SecurityEvent
from dealership.models.otp import (
    OTP_PURPOSE_LOGIN,
    OTP_PURPOSE_PURCHASE,
    OTP_PURPOSE_REGISTER,
)
from dealership.services import otp_service
from dealership.time_utils import utcnow

from conftest import make_vehicle


SUBJECT = "buyer@example.com"


class TestIssue:
    def test_code_is_six_digits(self, app):
        for _ in range(20):
            code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
            assert len(code) == 6
            assert code.isdigit()
            assert 100000 <= int(code) <= 999999

    def test_expiry_uses_config(self, app):
        app.config["OTP_EXPIRY_MINUTES"] = 5
        before = utcnow()
        otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        token = db.session.query(OtpToken).one()
        assert before + timedelta(minutes=4) < token.expires_at <= utcnow() + timedelta(minutes=5)

    def test_subject_is_normalized(self, app):
        otp_service.issue_otp("  Buyer@Example.COM ", OTP_PURPOSE_LOGIN)
        token = db.session.query(OtpToken).one()
        assert token.subject == SUBJECT

    def test_resource_stored_only_for_purchase(self, app):
        vehicle = make_vehicle()
        otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN, vehicle.id)
        otp_service.issue_otp(SUBJECT, OTP_PURPOSE_PURCHASE, vehicle.id)

        login_token, purchase_token = db.session.query(OtpToken).order_by(OtpToken.id).all()
        assert login_token.vehicle_id is None
        assert purchase_token.vehicle_id == vehicle.id

    def test_purchase_binding_requires_vehicle_row(self, app):
        token = OtpToken(
            subject=SUBJECT,
            purpose=OTP_PURPOSE_PURCHASE,
            code="123456",
            expires_at=utcnow() + timedelta(minutes=2),
            consumed=False,
            vehicle_id=4242,
        )
        db.session.add(token)
        with pytest.raises(IntegrityError):
            db.session.flush()
        db.session.rollback()

    def test_issue_does_not_invalidate_earlier_codes(self, app, monkeypatch):
        codes = iter(["111111", "222222"])
        monkeypatch.setattr(otp_service, "generate_code", lambda: next(codes))

        otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)

        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, "111111") is True
        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, "222222") is True

    def test_audit_event_excludes_code(self, app, caplog):
        caplog.set_level(logging.INFO)
        vehicle = make_vehicle()
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_PURCHASE, vehicle.id)

        event = db.session.query(SecurityEvent).filter_by(event_type="OTP_ISSUED").one()
        assert event.subject == SUBJECT
        assert event.action == OTP_PURPOSE_PURCHASE
        assert event.resource == f"vehicle:{vehicle.id}"
        assert "expires_at=" in event.reason
        assert code not in (event.reason or "")
        assert code not in caplog.text
        assert "OTP_ISSUED" in caplog.text


class TestValidate:
    def test_valid_exactly_once(self, app):
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)

        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code) is True
        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code) is False

        token = db.session.query(OtpToken).one()
        assert token.consumed is True
        assert token.consumed_at is not None

    def test_peek_does_not_consume(self, app):
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)

        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code, consume=False) is True
        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code) is True

    def test_subject_match_is_case_insensitive(self, app):
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        assert otp_service.validate_otp(" BUYER@example.com ", OTP_PURPOSE_LOGIN, code) is True

    def test_wrong_code_has_no_side_effect(self, app):
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        wrong = "000000" if code != "000000" else "999999"

        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, wrong) is False
        assert db.session.query(OtpToken).one().consumed is False
        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code) is True

    def test_wrong_purpose_fails(self, app):
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_REGISTER, code) is False

    def test_wrong_subject_fails(self, app):
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        assert otp_service.validate_otp("someone@else.com", OTP_PURPOSE_LOGIN, code) is False

    @pytest.mark.parametrize("code", ["", None])
    def test_blank_code_fails(self, app, code):
        otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code) is False

    def test_expired_code_fails(self, app):
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        token = db.session.query(OtpToken).one()
        token.expires_at = utcnow() - timedelta(seconds=1)
        db.session.commit()

        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code) is False
        assert db.session.query(OtpToken).one().consumed is False


class TestPurchaseBinding:
    def test_code_for_one_vehicle_fails_for_another(self, app):
        vehicle_a = make_vehicle()
        vehicle_b = make_vehicle(model="Corolla")
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_PURCHASE, vehicle_a.id)

        assert otp_service.validate_otp(
            SUBJECT, OTP_PURPOSE_PURCHASE, code, resource_id=vehicle_b.id
        ) is False
        assert otp_service.validate_otp(
            SUBJECT, OTP_PURPOSE_PURCHASE, code, resource_id=vehicle_a.id
        ) is True

    def test_purchase_code_requires_resource(self, app):
        vehicle = make_vehicle()
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_PURCHASE, vehicle.id)

        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_PURCHASE, code) is False
        assert db.session.query(OtpToken).one().consumed is False

    def test_binding_ignored_for_other_purposes(self, app):
        vehicle = make_vehicle()
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)
        assert otp_service.validate_otp(
            SUBJECT, OTP_PURPOSE_LOGIN, code, resource_id=vehicle.id
        ) is True


class TestCallerTransaction:
    def test_uncommitted_consumption_rolls_back(self, app):
        code = otp_service.issue_otp(SUBJECT, OTP_PURPOSE_LOGIN)

        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code, commit=False) is True
        db.session.rollback()

        assert otp_service.validate_otp(SUBJECT, OTP_PURPOSE_LOGIN, code) is True
