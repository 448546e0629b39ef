from __future__ import annotations

from ..extensions import db


OTP_PURPOSE_REGISTER = "REGISTER"
OTP_PURPOSE_LOGIN = "LOGIN"
OTP_PURPOSE_PURCHASE = "PURCHASE"
OTP_PURPOSE_UPDATE_RESOURCE = "UPDATE_RESOURCE"

OTP_PURPOSES = (
    OTP_PURPOSE_REGISTER,
    OTP_PURPOSE_LOGIN,
    OTP_PURPOSE_PURCHASE,
    OTP_PURPOSE_UPDATE_RESOURCE,
)


class OtpToken(db.Model):
    """
    Short-lived, single-use code bound to a subject and a purpose.

    PURCHASE codes are additionally bound to one vehicle so a code issued
    for vehicle A can never authorize a request for vehicle B.

    IMMUTABLE except for the consumed flag, which only moves false -> true.
    Rows are never deleted (kept for audit); expired rows are simply
    ignored at validation time.
    """
    __tablename__ = "otp_tokens"
    __table_args__ = (
        db.Index("ix_otp_tokens_lookup", "subject", "purpose", "consumed"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Normalized identity (trimmed, lower-cased email)
    subject = db.Column(db.String(255), nullable=False)
    purpose = db.Column(db.String(32), nullable=False)
    code = db.Column(db.String(6), nullable=False)

    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    consumed = db.Column(db.Boolean, nullable=False, default=False)
    consumed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Set only for PURCHASE
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
