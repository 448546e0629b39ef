# Overview: Flask API routes for auth operations; parses input and returns JSON responses.

# backend/dealership/routes/auth.py
"""
Authentication API routes

SECURITY FEATURES:
- One-time codes gate registration, login, purchases and admin updates
- Password strength validation on registration
- Session management with token-based auth
- Issued codes are echoed only when OTP_EXPOSE_CODE is enabled
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..errors import InputError
from ..models.otp import OTP_PURPOSES, OTP_PURPOSE_PURCHASE
from ..services import otp_service
from ..services import session_service
from ..services import user_service
from ..services import vehicle_service
from ..validation import require_positive_int
from ..decorators import json_errors, require_auth


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")
whoami_bp = Blueprint("whoami", __name__, url_prefix="/api/whoami")


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InputError("Invalid JSON payload")
    return data


def _purpose(data: dict) -> str:
    purpose = str(data.get("purpose") or "").strip().upper()
    if purpose not in OTP_PURPOSES:
        raise InputError("Invalid purpose", details={"allowed": list(OTP_PURPOSES)})
    return purpose


def _auth_result(user, token: str, session) -> dict:
    return {
        "token": token,
        "role": user.role,
        "email": user.email,
        "full_name": user.full_name or "",
        "user": user.to_dict(),
        "session": session.to_dict(),
    }


@auth_bp.post("/request-otp")
@json_errors
def request_otp_route():
    """
    Issue a one-time code.

    Request body:
    {
        "email": "buyer@example.com",   // required
        "purpose": "PURCHASE",          // REGISTER | LOGIN | PURCHASE | UPDATE_RESOURCE
        "vehicle_id": 7                 // required for PURCHASE
    }

    There is no mail/SMS channel. The code is returned in the response
    only when OTP_EXPOSE_CODE is on.
    """
    data = _json_body()
    email = otp_service.normalize_subject(data.get("email"))
    if not email:
        raise InputError("email is required")
    purpose = _purpose(data)

    vehicle_id = None
    if purpose == OTP_PURPOSE_PURCHASE:
        vehicle_id = require_positive_int(data.get("vehicle_id"), "vehicle_id")
        vehicle_service.get_vehicle(vehicle_id)

    code = otp_service.issue_otp(email, purpose, vehicle_id)

    body = {"message": "OTP generated."}
    if current_app.config.get("OTP_EXPOSE_CODE"):
        body["otp_code"] = code
    return jsonify(body), 200


@auth_bp.post("/validate-otp")
@json_errors
def validate_otp_route():
    """
    Check a one-time code.

    Request body:
    {
        "email": "...", "purpose": "...", "otp_code": "123456",
        "vehicle_id": 7      // PURCHASE only
    }

    A valid code is consumed. This route never reports a code as valid
    without spending it.
    """
    data = _json_body()
    email = otp_service.normalize_subject(data.get("email"))
    if not email:
        raise InputError("email is required")
    purpose = _purpose(data)
    code = str(data.get("otp_code") or "").strip()
    if not code:
        raise InputError("otp_code is required")

    vehicle_id = None
    if data.get("vehicle_id") is not None:
        vehicle_id = require_positive_int(data.get("vehicle_id"), "vehicle_id")

    if data.get("consume", True) is not True:
        raise InputError("consume=false is not supported")

    valid = otp_service.validate_otp(email, purpose, code, resource_id=vehicle_id)
    return jsonify({"valid": valid}), 200


@auth_bp.post("/register")
@json_errors
def register_route():
    """
    Register a CUSTOMER account with a REGISTER code and sign in.

    Request body:
    {
        "email": "...", "password": "...", "full_name": "...", "otp_code": "123456"
    }
    """
    data = _json_body()
    user = user_service.register_customer(
        email=data.get("email"),
        password=data.get("password") or "",
        full_name=data.get("full_name"),
        otp_code=str(data.get("otp_code") or ""),
    )

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=request.headers.get("User-Agent"),
        ip_address=request.remote_addr,
    )
    return jsonify(_auth_result(user, token, session)), 201


@auth_bp.post("/login")
@json_errors
def login_route():
    """
    Authenticate with password plus a LOGIN code and create a session token.

    Token must be included in Authorization header for protected routes.
    """
    data = _json_body()
    email = data.get("email")
    password = data.get("password")
    otp_code = str(data.get("otp_code") or "").strip()

    if not all([email, password, otp_code]):
        raise InputError("email, password and otp_code required")

    user_agent = request.headers.get("User-Agent")
    ip_address = request.remote_addr

    user = user_service.authenticate(
        email,
        password,
        otp_code,
        ip_address=ip_address,
        user_agent=user_agent,
    )

    session, token = session_service.create_session(
        user_id=user.id,
        user_agent=user_agent,
        ip_address=ip_address,
    )
    return jsonify(_auth_result(user, token, session)), 200


@auth_bp.post("/logout")
@json_errors
@require_auth
def logout_route():
    """Revoke the current session token."""
    session_service.revoke_session(g.token, reason="User logout")
    return jsonify({"message": "Logged out"}), 200


@whoami_bp.get("")
@json_errors
@require_auth
def whoami_route():
    """Identity behind the current bearer token."""
    user = g.current_user
    return jsonify({
        "is_authenticated": True,
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "role": user.role,
    }), 200
