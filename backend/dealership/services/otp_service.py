# Overview: Service-layer operations for one-time codes; issuance and single-use validation.

"""
One-time code ledger.

INVARIANTS:
- Codes are 6 numeric digits drawn uniformly from 100000-999999.
- A token is bound to (subject, purpose) and, for PURCHASE only, to one vehicle id.
- Issuing never invalidates earlier tokens; validation honors the newest
  unconsumed, unexpired match only.
- consumed moves false -> true exactly once. The flip is a conditional UPDATE,
  so two concurrent validations of the same token cannot both succeed.
- A failed validation has no side effect.
- The code itself is never written to the audit trail or the logs.
"""

from __future__ import annotations

import secrets
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..models import OtpToken
from ..models.otp import OTP_PURPOSE_PURCHASE
from dealership.time_utils import utcnow, to_utc_z
from .audit_service import log_security_event
from .concurrency import conditional_update


DEFAULT_EXPIRY_MINUTES = 2
CODE_MIN = 100000
CODE_MAX = 999999


def normalize_subject(subject: str) -> str:
    """Subjects are emails; compare them trimmed and case-insensitively."""
    return str(subject or "").strip().lower()


def _expiry_minutes() -> int:
    return int(current_app.config.get("OTP_EXPIRY_MINUTES", DEFAULT_EXPIRY_MINUTES))


def generate_code() -> str:
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


def issue_otp(
    subject: str,
    purpose: str,
    resource_id: int | None = None,
    *,
    commit: bool = True,
) -> str:
    """
    Issue a new code for (subject, purpose[, vehicle]) and return it.

    The resource binding is stored only for PURCHASE codes. Earlier tokens
    for the same key remain valid until they expire or are consumed.
    """
    code = generate_code()
    token = OtpToken(
        subject=normalize_subject(subject),
        purpose=purpose,
        code=code,
        expires_at=utcnow() + timedelta(minutes=_expiry_minutes()),
        consumed=False,
        vehicle_id=resource_id if purpose == OTP_PURPOSE_PURCHASE else None,
    )
    db.session.add(token)
    db.session.flush()

    log_security_event(
        "OTP_ISSUED",
        True,
        subject=token.subject,
        resource=f"vehicle:{token.vehicle_id}" if token.vehicle_id is not None else None,
        action=purpose,
        reason=f"expires_at={to_utc_z(token.expires_at)}",
        commit=commit,
    )
    return code


def _find_match(subject: str, purpose: str, code: str, resource_id: int | None) -> OtpToken | None:
    now = utcnow()
    query = db.session.query(OtpToken).filter(
        OtpToken.subject == normalize_subject(subject),
        OtpToken.purpose == purpose,
        OtpToken.consumed.is_(False),
        OtpToken.expires_at >= now,
        OtpToken.code == code,
    )
    if purpose == OTP_PURPOSE_PURCHASE:
        # A purchase code only authorizes the vehicle it was issued for
        if resource_id is None:
            return None
        query = query.filter(OtpToken.vehicle_id == resource_id)

    return query.order_by(OtpToken.id.desc()).first()


def validate_otp(
    subject: str,
    purpose: str,
    code: str,
    resource_id: int | None = None,
    consume: bool = True,
    *,
    commit: bool = True,
) -> bool:
    """
    Check a code against the newest matching token.

    Returns False on any mismatch (subject, purpose, code, vehicle binding,
    expiry, already consumed) without touching the store. With consume=True
    the token is flipped to consumed before returning True.

    Pass commit=False when validating inside a caller's unit of work so the
    consumption is rolled back if the caller's later steps fail.
    """
    if not code:
        return False

    token = _find_match(subject, purpose, str(code).strip(), resource_id)
    if token is None:
        return False

    if not consume:
        return True

    consumed = conditional_update(
        db.session.query(OtpToken).filter(
            OtpToken.id == token.id,
            OtpToken.consumed.is_(False),
        ),
        {OtpToken.consumed: True, OtpToken.consumed_at: utcnow()},
    )
    if not consumed:
        # Another caller consumed it between our read and write
        return False

    db.session.expire(token)
    if commit:
        db.session.commit()
    return True
