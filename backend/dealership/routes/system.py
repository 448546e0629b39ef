# backend/dealership/routes/system.py
"""
System health endpoint.

Reports database reachability and a few inventory counts; returns 503 when
the store cannot be queried.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Vehicle, PurchaseRequest
from ..models.purchases import PURCHASE_STATUS_PENDING
from dealership.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        available_vehicles = db.session.query(Vehicle).filter(Vehicle.is_available.is_(True)).count()
        pending_requests = (
            db.session.query(PurchaseRequest)
            .filter(PurchaseRequest.status == PURCHASE_STATUS_PENDING)
            .count()
        )

        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "available_vehicles": available_vehicles,
                "pending_requests": pending_requests,
            }
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: database reachable
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    return {
        "status": database_health["status"],
        "timestamp": to_utc_z(utcnow()),
        "checks": {"database": database_health},
    }, http_status
