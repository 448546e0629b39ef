# Overview: Flask API routes for customer purchase operations; parses input and returns JSON responses.

# backend/dealership/routes/purchases.py
"""
Customer purchase routes.

SECURITY: All routes require a CUSTOMER session. The customer id always
comes from the session, never from the request body.
"""
from flask import Blueprint, request, g

from ..errors import InputError
from ..models.auth import ROLE_CUSTOMER
from ..services import purchase_service
from ..services import sales_service
from dealership.time_utils import to_utc_z
from ..decorators import json_errors, require_auth, require_role

purchases_bp = Blueprint("purchases", __name__, url_prefix="/api/purchases")


@purchases_bp.post("/request")
@json_errors
@require_auth
@require_role(ROLE_CUSTOMER)
def request_purchase():
    """
    Open a purchase request for a vehicle.

    Request body:
    {
        "vehicle_id": 7,          // required
        "otp_code": "123456"      // PURCHASE code issued for this vehicle
    }
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InputError("Invalid JSON payload")

    purchase_request = purchase_service.create_purchase_request(
        vehicle_id=data.get("vehicle_id"),
        customer_id=g.current_user.id,
        otp_code=str(data.get("otp_code") or ""),
    )
    return {
        "message": "Purchase request submitted.",
        "request_id": purchase_request.id,
        "vehicle_id": purchase_request.vehicle_id,
        "requested_at": to_utc_z(purchase_request.requested_at),
    }, 201


@purchases_bp.get("/history")
@json_errors
@require_auth
@require_role(ROLE_CUSTOMER)
def purchase_history():
    """Sales for the current customer, newest first."""
    items = sales_service.get_purchase_history(g.current_user.id)
    return {"items": items, "count": len(items)}
