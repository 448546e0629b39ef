# Overview: Service-layer operations for user accounts; registration, login and lookups.

"""
User directory.

Resolves subject identities (emails) to stored accounts for the purchase
workflow, and owns the OTP-gated registration and login flows.

- Registration requires a REGISTER code for the email being registered.
- Login requires the password AND a LOGIN code for the account email.
- Emails are stored trimmed and lower-cased, matching OTP subjects.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import Conflict, InputError, InvalidOtp, NotAuthorized
from ..extensions import db
from ..models import User
from ..models.auth import ROLE_ADMIN, ROLE_CUSTOMER
from ..models.otp import OTP_PURPOSE_LOGIN, OTP_PURPOSE_REGISTER
from dealership.time_utils import utcnow
from .audit_service import log_security_event
from .auth_service import PasswordValidationError, hash_password, verify_password
from .concurrency import run_with_retry, unit_of_work
from .otp_service import normalize_subject, validate_otp


def get_user_by_id(user_id: int) -> User | None:
    return db.session.get(User, user_id)


def get_user_by_email(email: str) -> User | None:
    return db.session.query(User).filter_by(email=normalize_subject(email)).first()


def list_customers() -> list[dict]:
    customers = (
        db.session.query(User)
        .filter(User.role == ROLE_CUSTOMER)
        .order_by(User.id.asc())
        .all()
    )
    return [c.to_summary() for c in customers]


def _hash_or_input_error(password: str) -> str:
    try:
        return hash_password(password)
    except PasswordValidationError as exc:
        raise InputError(str(exc))


def _create_user(email: str, password_hash: str, role: str, full_name: str | None) -> User:
    if get_user_by_email(email):
        raise Conflict("Email already registered")
    user = User(
        email=normalize_subject(email),
        password_hash=password_hash,
        role=role,
        full_name=str(full_name or "").strip() or None,
        is_active=True,
    )
    db.session.add(user)
    try:
        db.session.flush()
    except IntegrityError:
        raise Conflict("Email already registered")
    return user


def register_customer(email: str, password: str, full_name: str | None, otp_code: str) -> User:
    """
    Register a CUSTOMER account.

    The REGISTER code is consumed in the same transaction as the insert, so
    a duplicate email leaves the code unused.

    Raises:
        InputError: blank email/code or weak password
        InvalidOtp: code missing, wrong, expired or already used
        Conflict: email already registered
    """
    if not normalize_subject(email):
        raise InputError("email is required")
    if not (otp_code or "").strip():
        raise InputError("otp_code is required")

    # Hash before taking the write lock
    password_hash = _hash_or_input_error(password)

    def _op():
        with unit_of_work():
            if not validate_otp(email, OTP_PURPOSE_REGISTER, otp_code, commit=False):
                raise InvalidOtp()
            user = _create_user(email, password_hash, ROLE_CUSTOMER, full_name)
        return user

    return run_with_retry(_op)


def create_admin(email: str, password: str, full_name: str | None = None) -> User:
    """Bootstrap an ADMIN account (CLI only, no OTP)."""
    if not normalize_subject(email):
        raise InputError("email is required")
    password_hash = _hash_or_input_error(password)
    with unit_of_work():
        user = _create_user(email, password_hash, ROLE_ADMIN, full_name)
    return user


def authenticate(
    email: str,
    password: str,
    otp_code: str,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> User:
    """
    Authenticate with password plus a LOGIN code.

    Raises:
        NotAuthorized: unknown email, inactive account, or wrong password
        InvalidOtp: password ok but the LOGIN code does not validate
    """
    subject = normalize_subject(email)
    user = get_user_by_email(subject)

    if not user or not user.is_active or not verify_password(password, user.password_hash):
        log_security_event(
            "LOGIN_FAILED",
            False,
            user_id=user.id if user else None,
            subject=subject,
            action="LOGIN",
            reason="Invalid credentials",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        raise NotAuthorized("Invalid credentials")

    if not validate_otp(subject, OTP_PURPOSE_LOGIN, otp_code):
        raise InvalidOtp()

    user.last_login_at = utcnow()
    log_security_event(
        "LOGIN_SUCCESS",
        True,
        user_id=user.id,
        subject=subject,
        action="LOGIN",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return user
