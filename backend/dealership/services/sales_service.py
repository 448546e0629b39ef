# Overview: Read side of the sale ledger; customer history and the admin review queue.

"""
Sale ledger queries.

Sales are append-only and written only by the approval step in
purchase_service. This module never mutates.
"""

from __future__ import annotations

from sqlalchemy.orm import joinedload

from ..errors import NotFound
from ..extensions import db
from ..models import PurchaseRequest, Sale
from ..models.purchases import PURCHASE_STATUS_PENDING
from dealership.time_utils import to_utc_z
from .user_service import get_user_by_id


def get_purchase_history(customer_id: int) -> list[dict]:
    """
    All sales for a customer, newest first.

    Raises:
        NotFound: unknown customer
    """
    if get_user_by_id(customer_id) is None:
        raise NotFound("Customer not found")

    sales = (
        db.session.query(Sale)
        .options(joinedload(Sale.vehicle))
        .filter(Sale.customer_id == customer_id)
        .order_by(Sale.sold_at.desc(), Sale.id.desc())
        .all()
    )
    return [
        {
            "sale_id": s.id,
            "sold_at": to_utc_z(s.sold_at),
            "price_cents": s.price_cents,
            "vehicle": s.vehicle.to_summary(),
        }
        for s in sales
    ]


def get_pending_requests() -> list[dict]:
    """PENDING requests, oldest first (first come, first served)."""
    requests = (
        db.session.query(PurchaseRequest)
        .options(joinedload(PurchaseRequest.vehicle), joinedload(PurchaseRequest.customer))
        .filter(PurchaseRequest.status == PURCHASE_STATUS_PENDING)
        .order_by(PurchaseRequest.requested_at.asc(), PurchaseRequest.id.asc())
        .all()
    )
    return [
        {
            "request_id": r.id,
            "requested_at": to_utc_z(r.requested_at),
            "vehicle": r.vehicle.to_summary(),
            "customer": r.customer.to_summary(),
        }
        for r in requests
    ]
