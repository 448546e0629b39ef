# Overview: Flask API routes for vehicle operations; parses input and returns JSON responses.

# backend/dealership/routes/vehicles.py
"""
Vehicle inventory routes.

- Browsing and detail are public.
- Create and update require an ADMIN session; update also needs an
  UPDATE_RESOURCE code issued to the admin's email.
"""
from flask import Blueprint, request, g

from ..errors import InputError
from ..models.auth import ROLE_ADMIN
from ..services import vehicle_service
from ..services.vehicle_service import VEHICLE_FILTER_KEYS
from ..decorators import json_errors, require_auth, require_role

vehicles_bp = Blueprint("vehicles", __name__, url_prefix="/api/vehicles")


@vehicles_bp.get("")
@json_errors
def list_vehicles():
    """
    List available vehicles.

    Query params (all optional):
    - make, model: exact match (case-insensitive)
    - min_year, max_year: inclusive
    - min_price_cents, max_price_cents: inclusive
    """
    filters = {key: request.args.get(key) for key in VEHICLE_FILTER_KEYS if key in request.args}
    items = vehicle_service.browse_vehicles(filters)
    return {"items": items, "count": len(items)}


@vehicles_bp.get("/<int:vehicle_id>")
@json_errors
def get_vehicle(vehicle_id: int):
    return vehicle_service.get_vehicle(vehicle_id).to_dict()


@vehicles_bp.post("")
@json_errors
@require_auth
@require_role(ROLE_ADMIN)
def create_vehicle():
    """
    Create a vehicle.

    Request body:
    {
        "make": "Toyota", "model": "Camry", "year": 2021,
        "price_cents": 8800000, "color": "White", "description": "..."
    }
    """
    payload = request.get_json(silent=True)
    vehicle = vehicle_service.create_vehicle(payload)
    return vehicle.to_dict(), 201


@vehicles_bp.put("/<int:vehicle_id>")
@json_errors
@require_auth
@require_role(ROLE_ADMIN)
def update_vehicle(vehicle_id: int):
    """
    Update a vehicle's descriptive fields or price.

    Request body: any writable vehicle field plus "otp_code". Availability
    cannot be changed here.
    """
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise InputError("Invalid JSON payload")
    payload = dict(payload)
    otp_code = str(payload.pop("otp_code", "") or "")

    vehicle = vehicle_service.update_vehicle(
        vehicle_id,
        payload,
        admin_email=g.current_user.email,
        otp_code=otp_code,
    )
    return vehicle.to_dict()
