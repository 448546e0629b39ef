from __future__ import annotations

from ..extensions import db
from dealership.time_utils import to_utc_z


PURCHASE_STATUS_PENDING = "PENDING"
PURCHASE_STATUS_APPROVED = "APPROVED"
PURCHASE_STATUS_REJECTED = "REJECTED"


class PurchaseRequest(db.Model):
    """
    Customer intent to buy one vehicle, pending admin decision.

    LIFECYCLE: PENDING -> APPROVED | REJECTED (both terminal).

    A customer may hold at most one PENDING request per vehicle. The partial
    unique index enforces it in the store; the service checks it first so
    callers get a clean Conflict.
    """
    __tablename__ = "purchase_requests"
    __table_args__ = (
        db.Index(
            "uq_purchase_requests_pending_customer_vehicle",
            "customer_id",
            "vehicle_id",
            unique=True,
            sqlite_where=db.text("status = 'PENDING'"),
            postgresql_where=db.text("status = 'PENDING'"),
        ),
        db.Index("ix_purchase_requests_status_requested", "status", "requested_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False, index=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    requested_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    status = db.Column(db.String(16), nullable=False, default=PURCHASE_STATUS_PENDING, index=True)

    # Decision audit trail
    decided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    decided_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    rejection_reason = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    vehicle = db.relationship("Vehicle", backref=db.backref("purchase_requests", lazy=True))
    customer = db.relationship("User", foreign_keys=[customer_id], backref=db.backref("purchase_requests", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "vehicle_id": self.vehicle_id,
            "customer_id": self.customer_id,
            "requested_at": to_utc_z(self.requested_at),
            "status": self.status,
            "decided_at": to_utc_z(self.decided_at) if self.decided_at else None,
            "decided_by_user_id": self.decided_by_user_id,
            "rejection_reason": self.rejection_reason,
            "version_id": self.version_id,
        }


class Sale(db.Model):
    """
    Completed vehicle sale.

    IMMUTABLE: Written once by the approval step, never updated or deleted.
    price_cents is copied from the vehicle at approval time.
    A vehicle can be sold at most once (unique vehicle_id).
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("vehicle_id", name="uq_sales_vehicle"),
        db.UniqueConstraint("purchase_request_id", name="uq_sales_purchase_request"),
        db.Index("ix_sales_customer_sold", "customer_id", "sold_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=False)
    customer_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    purchase_request_id = db.Column(db.Integer, db.ForeignKey("purchase_requests.id"), nullable=False)

    price_cents = db.Column(db.Integer, nullable=False)
    sold_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    vehicle = db.relationship("Vehicle")
    customer = db.relationship("User", backref=db.backref("sales", lazy=True))
    purchase_request = db.relationship("PurchaseRequest", backref=db.backref("sale", uselist=False))
