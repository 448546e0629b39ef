# Overview: Flask API routes for admin operations; parses input and returns JSON responses.

# backend/dealership/routes/admin.py
"""
Admin routes: customer directory and the purchase review queue.

SECURITY: All routes require an ADMIN session. The deciding admin is
recorded on every approval and rejection.
"""
from flask import Blueprint, request, g

from ..models.auth import ROLE_ADMIN
from ..services import purchase_service
from ..services import sales_service
from ..services import user_service
from dealership.time_utils import to_utc_z
from ..decorators import json_errors, require_auth, require_role

admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.get("/customers")
@json_errors
@require_auth
@require_role(ROLE_ADMIN)
def list_customers():
    items = user_service.list_customers()
    return {"items": items, "count": len(items)}


@admin_bp.get("/purchase-requests")
@json_errors
@require_auth
@require_role(ROLE_ADMIN)
def list_pending_requests():
    """PENDING purchase requests, oldest first."""
    items = sales_service.get_pending_requests()
    return {"items": items, "count": len(items)}


@admin_bp.post("/process-sale/<int:request_id>")
@json_errors
@require_auth
@require_role(ROLE_ADMIN)
def process_sale(request_id: int):
    """
    Approve a PENDING request: mark the vehicle sold and record the sale.

    Returns:
    - 200: sale recorded
    - 404: unknown request
    - 409: request already decided, or vehicle already sold
    """
    sale = purchase_service.approve_purchase_request(request_id, admin_user_id=g.current_user.id)
    return {
        "message": "Sale processed.",
        "sale_id": sale.id,
        "price_cents": sale.price_cents,
        "sold_at": to_utc_z(sale.sold_at),
    }


@admin_bp.post("/purchase-requests/<int:request_id>/reject")
@json_errors
@require_auth
@require_role(ROLE_ADMIN)
def reject_request(request_id: int):
    """
    Reject a PENDING request.

    Request body (optional):
    {
        "reason": "Financing declined"
    }
    """
    data = request.get_json(silent=True) or {}
    reason = data.get("reason") if isinstance(data, dict) else None
    purchase_request = purchase_service.reject_purchase_request(
        request_id,
        admin_user_id=g.current_user.id,
        reason=reason,
    )
    return {"message": "Purchase request rejected.", "request": purchase_request.to_dict()}
