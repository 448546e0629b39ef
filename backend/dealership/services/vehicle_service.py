# Overview: Service-layer operations for vehicle inventory; browse, create and OTP-gated updates.

"""
Vehicle inventory service.

Availability is owned by the purchase workflow. Nothing here can set
is_available; create always starts a vehicle as available and update only
touches descriptive fields and price.
"""

from __future__ import annotations

from ..errors import InputError, InvalidOtp, NotFound
from ..extensions import db
from ..models import Vehicle
from ..models.otp import OTP_PURPOSE_UPDATE_RESOURCE
from ..validation import (
    VEHICLE_POLICY,
    coerce_int,
    enforce_rules_vehicle,
    validate_payload,
)
from .concurrency import lock_for_update, run_with_retry, unit_of_work
from .otp_service import validate_otp

VEHICLE_FILTER_KEYS = ("make", "model", "min_year", "max_year", "min_price_cents", "max_price_cents")


def browse_vehicles(filters: dict | None = None) -> list[dict]:
    """
    List available vehicles, ordered by make then model.

    Filters (all optional): make, model (case-insensitive exact match),
    min_year, max_year, min_price_cents, max_price_cents (inclusive bounds).

    Reads run outside any write transaction and may be stale.
    """
    filters = filters or {}
    query = db.session.query(Vehicle).filter(Vehicle.is_available.is_(True))

    make = (filters.get("make") or "").strip()
    if make:
        query = query.filter(db.func.lower(Vehicle.make) == make.lower())
    model = (filters.get("model") or "").strip()
    if model:
        query = query.filter(db.func.lower(Vehicle.model) == model.lower())

    bounds = (
        ("min_year", Vehicle.year, ">="),
        ("max_year", Vehicle.year, "<="),
        ("min_price_cents", Vehicle.price_cents, ">="),
        ("max_price_cents", Vehicle.price_cents, "<="),
    )
    for key, column, op in bounds:
        raw = filters.get(key)
        if raw is None or raw == "":
            continue
        value = coerce_int(raw, key)
        query = query.filter(column >= value if op == ">=" else column <= value)

    vehicles = query.order_by(Vehicle.make.asc(), Vehicle.model.asc(), Vehicle.id.asc()).all()
    return [v.to_dict() for v in vehicles]


def get_vehicle(vehicle_id: int) -> Vehicle:
    vehicle = db.session.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFound("Vehicle not found")
    return vehicle


def create_vehicle(payload: dict) -> Vehicle:
    """Create an available vehicle from a validated payload."""
    patch = validate_payload(model=Vehicle, payload=payload, policy=VEHICLE_POLICY, partial=False)
    enforce_rules_vehicle(patch)

    vehicle = Vehicle(is_available=True, **patch)
    db.session.add(vehicle)
    db.session.commit()
    return vehicle


def update_vehicle(vehicle_id: int, payload: dict, admin_email: str, otp_code: str) -> Vehicle:
    """
    Apply a partial update to a vehicle.

    Requires an UPDATE_RESOURCE code issued to the acting admin. The code is
    consumed in the same transaction as the update, so a rejected payload or
    a missing vehicle leaves it unused.

    Raises:
        InputError: blank code, non-writable field, bad value
        InvalidOtp: code does not validate
        NotFound: unknown vehicle
    """
    if not (otp_code or "").strip():
        raise InputError("otp_code is required")

    patch = validate_payload(model=Vehicle, payload=payload, policy=VEHICLE_POLICY, partial=True)
    enforce_rules_vehicle(patch)
    if not patch:
        raise InputError("No updatable fields supplied")

    def _op():
        with unit_of_work():
            vehicle = lock_for_update(db.session.query(Vehicle).filter_by(id=vehicle_id)).first()
            if vehicle is None:
                raise NotFound("Vehicle not found")
            if not validate_otp(admin_email, OTP_PURPOSE_UPDATE_RESOURCE, otp_code, commit=False):
                raise InvalidOtp()
            for key, value in patch.items():
                setattr(vehicle, key, value)
        return vehicle

    return run_with_retry(_op)
