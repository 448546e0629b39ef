from __future__ import annotations

from ..extensions import db


class SecurityEvent(db.Model):
    """
    Security and business audit log.

    WHY: Track OTP issuance, logins, and purchase decisions. Events are
    written inside the same DB transaction as the change they record.

    IMMUTABLE: Never update or delete. Append-only for audit integrity.
    One-time codes are never written here.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_user_type", "user_id", "event_type"),
        db.Index("ix_security_events_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)  # Nullable for anonymous
    subject = db.Column(db.String(255), nullable=True)  # e.g., OTP subject email

    # Event classification
    event_type = db.Column(db.String(64), nullable=False, index=True)  # OTP_ISSUED, SALE_RECORDED, LOGIN_FAILED, etc.
    resource = db.Column(db.String(128), nullable=True)  # e.g., "vehicle:7"
    action = db.Column(db.String(64), nullable=True)     # e.g., "PURCHASE"

    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    user = db.relationship("User", backref=db.backref("security_events", lazy=True))
