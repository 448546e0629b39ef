# Overview: Service-layer operations for the audit trail; append-only security events.

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import SecurityEvent
from dealership.time_utils import utcnow


def log_security_event(
    event_type: str,
    success: bool,
    *,
    user_id: int | None = None,
    subject: str | None = None,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Append an event to the audit trail and mirror it to the app logger.

    WHY: Immutable audit log for security monitoring. Pass commit=False when
    the event must land in the caller's transaction (it is then rolled back
    together with the change it describes).

    event_type examples:
    - OTP_ISSUED
    - PURCHASE_REQUESTED
    - SALE_RECORDED
    - PURCHASE_REJECTED
    - LOGIN_SUCCESS / LOGIN_FAILED
    """
    event = SecurityEvent(
        user_id=user_id,
        subject=subject,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow()
    )

    db.session.add(event)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    current_app.logger.info(
        "audit event=%s success=%s user_id=%s subject=%s resource=%s action=%s reason=%s",
        event_type, success, user_id, subject, resource, action, reason,
    )
    return event
