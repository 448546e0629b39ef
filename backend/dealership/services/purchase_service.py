# Overview: Service-layer operations for the purchase workflow; request, approve and reject.

"""
Purchase workflow.

LIFECYCLE:
- PurchaseRequest: PENDING -> APPROVED | REJECTED (terminal)
- Vehicle: available -> sold (never reversed here)

INVARIANTS:
- Every operation runs as one unit of work. A failure at any step rolls
  back everything, including a consumed purchase code.
- A customer holds at most one PENDING request per vehicle.
- Approval is serialized per vehicle: the availability flip is a
  conditional UPDATE taken under the write lock, so two approvals for the
  same vehicle can never both record a sale.
- Approving or rejecting a decided request is an error, never a no-op.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from ..errors import (
    AlreadyDecided,
    Conflict,
    InputError,
    InvalidOtp,
    NotAuthorized,
    NotFound,
    VehicleUnavailable,
)
from ..extensions import db
from ..models import PurchaseRequest, Sale, Vehicle
from ..models.otp import OTP_PURPOSE_PURCHASE
from ..models.purchases import (
    PURCHASE_STATUS_APPROVED,
    PURCHASE_STATUS_PENDING,
    PURCHASE_STATUS_REJECTED,
)
from ..validation import require_positive_int
from dealership.time_utils import utcnow
from .audit_service import log_security_event
from .concurrency import conditional_update, lock_for_update, run_with_retry, unit_of_work
from .otp_service import validate_otp
from .user_service import get_user_by_id


def _has_pending_request(customer_id: int, vehicle_id: int) -> bool:
    return (
        db.session.query(PurchaseRequest.id)
        .filter(
            PurchaseRequest.customer_id == customer_id,
            PurchaseRequest.vehicle_id == vehicle_id,
            PurchaseRequest.status == PURCHASE_STATUS_PENDING,
        )
        .first()
        is not None
    )


def create_purchase_request(vehicle_id: int, customer_id: int, otp_code: str) -> PurchaseRequest:
    """
    Open a PENDING purchase request for a vehicle.

    Steps, in one transaction:
    1. resolve the customer
    2. reject a duplicate PENDING request for the same vehicle
    3. consume the PURCHASE code bound to this vehicle
    4. re-read availability
    5. insert the request

    Raises:
        InputError: non-positive ids or blank code
        NotAuthorized: customer account no longer exists
        Conflict: customer already has a pending request for this vehicle
        InvalidOtp: code wrong, expired, used, or bound to another vehicle
        VehicleUnavailable: vehicle missing or sold
    """
    vehicle_id = require_positive_int(vehicle_id, "vehicle_id")
    customer_id = require_positive_int(customer_id, "customer_id")
    if not (otp_code or "").strip():
        raise InputError("otp_code is required")

    def _op():
        with unit_of_work():
            customer = get_user_by_id(customer_id)
            if customer is None or not customer.is_active:
                raise NotAuthorized("Customer account not found")

            if _has_pending_request(customer_id, vehicle_id):
                raise Conflict(
                    "A pending purchase request already exists for this vehicle",
                    details={"vehicle_id": vehicle_id},
                )

            if not validate_otp(
                customer.email,
                OTP_PURPOSE_PURCHASE,
                otp_code,
                resource_id=vehicle_id,
                commit=False,
            ):
                raise InvalidOtp()

            vehicle = db.session.get(Vehicle, vehicle_id, populate_existing=True)
            if vehicle is None or not vehicle.is_available:
                raise VehicleUnavailable(details={"vehicle_id": vehicle_id})

            purchase_request = PurchaseRequest(
                vehicle_id=vehicle_id,
                customer_id=customer_id,
                status=PURCHASE_STATUS_PENDING,
                requested_at=utcnow(),
            )
            db.session.add(purchase_request)
            try:
                db.session.flush()
            except IntegrityError:
                # Partial unique index caught a concurrent duplicate
                raise Conflict(
                    "A pending purchase request already exists for this vehicle",
                    details={"vehicle_id": vehicle_id},
                )

            log_security_event(
                "PURCHASE_REQUESTED",
                True,
                user_id=customer.id,
                subject=customer.email,
                resource=f"vehicle:{vehicle_id}",
                action="PURCHASE_REQUEST",
                reason=f"request_id={purchase_request.id}",
                commit=False,
            )
        return purchase_request

    return run_with_retry(_op)


def _load_pending_locked(request_id: int) -> PurchaseRequest:
    purchase_request = lock_for_update(
        db.session.query(PurchaseRequest).filter_by(id=request_id)
    ).populate_existing().first()
    if purchase_request is None:
        raise NotFound("Purchase request not found")
    if purchase_request.status != PURCHASE_STATUS_PENDING:
        raise AlreadyDecided(details={"status": purchase_request.status})
    return purchase_request


def _record_sale(purchase_request: PurchaseRequest, price_cents: int) -> Sale:
    sale = Sale(
        vehicle_id=purchase_request.vehicle_id,
        customer_id=purchase_request.customer_id,
        purchase_request_id=purchase_request.id,
        price_cents=price_cents,
        sold_at=utcnow(),
    )
    db.session.add(sale)
    db.session.flush()
    return sale


def approve_purchase_request(request_id: int, admin_user_id: int | None = None) -> Sale:
    """
    Approve a PENDING request and record the sale.

    Under one write transaction: lock the request, lock the vehicle, flip
    availability with a conditional UPDATE, mark the request APPROVED and
    append the Sale with the vehicle's current price.

    Lock contention is retried; each retry re-reads state, so the loser of
    a race on the same vehicle sees VehicleUnavailable.

    Raises:
        InputError: non-positive id
        NotFound: unknown request
        AlreadyDecided: request is not PENDING
        VehicleUnavailable: vehicle already sold or missing
    """
    request_id = require_positive_int(request_id, "request_id")

    def _op():
        with unit_of_work():
            purchase_request = _load_pending_locked(request_id)

            vehicle = lock_for_update(
                db.session.query(Vehicle).filter_by(id=purchase_request.vehicle_id)
            ).populate_existing().first()
            if vehicle is None or not vehicle.is_available:
                raise VehicleUnavailable(details={"vehicle_id": purchase_request.vehicle_id})
            price_cents = vehicle.price_cents

            flipped = conditional_update(
                db.session.query(Vehicle).filter(
                    Vehicle.id == vehicle.id,
                    Vehicle.is_available.is_(True),
                ),
                {Vehicle.is_available: False, Vehicle.version_id: Vehicle.version_id + 1},
            )
            if not flipped:
                raise VehicleUnavailable(details={"vehicle_id": vehicle.id})
            db.session.expire(vehicle)

            purchase_request.status = PURCHASE_STATUS_APPROVED
            purchase_request.decided_at = utcnow()
            purchase_request.decided_by_user_id = admin_user_id

            sale = _record_sale(purchase_request, price_cents)

            log_security_event(
                "SALE_RECORDED",
                True,
                user_id=admin_user_id,
                resource=f"vehicle:{purchase_request.vehicle_id}",
                action="APPROVE",
                reason=f"request_id={purchase_request.id} sale_id={sale.id} price_cents={price_cents}",
                commit=False,
            )
        return sale

    return run_with_retry(_op)


def reject_purchase_request(
    request_id: int,
    admin_user_id: int | None = None,
    reason: str | None = None,
) -> PurchaseRequest:
    """
    Reject a PENDING request. The vehicle and the sale ledger are untouched.

    Raises:
        InputError: non-positive id
        NotFound: unknown request
        AlreadyDecided: request is not PENDING
    """
    request_id = require_positive_int(request_id, "request_id")
    if reason is not None and not isinstance(reason, str):
        raise InputError("reason must be a string")
    reason = (reason or "").strip() or None
    if reason and len(reason) > 255:
        raise InputError("reason exceeds max length 255")

    def _op():
        with unit_of_work():
            purchase_request = _load_pending_locked(request_id)

            purchase_request.status = PURCHASE_STATUS_REJECTED
            purchase_request.decided_at = utcnow()
            purchase_request.decided_by_user_id = admin_user_id
            purchase_request.rejection_reason = reason
            db.session.flush()

            log_security_event(
                "PURCHASE_REJECTED",
                True,
                user_id=admin_user_id,
                resource=f"vehicle:{purchase_request.vehicle_id}",
                action="REJECT",
                reason=f"request_id={purchase_request.id}",
                commit=False,
            )
        return purchase_request

    return run_with_retry(_op)
