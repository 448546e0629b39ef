from __future__ import annotations

from ..extensions import db
from dealership.time_utils import to_utc_z


class Vehicle(db.Model):
    """
    Vehicle inventory record.

    Availability is a single boolean. The purchase workflow is the only
    writer that flips it, and only from True to False: a sold vehicle is
    permanently removed from sale.
    """
    __tablename__ = "vehicles"
    __table_args__ = (
        db.Index("ix_vehicles_make_model", "make", "model"),
        db.Index("ix_vehicles_available", "is_available"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    make = db.Column(db.String(64), nullable=False)
    model = db.Column(db.String(64), nullable=False)
    year = db.Column(db.Integer, nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    color = db.Column(db.String(32), nullable=True)
    description = db.Column(db.Text, nullable=True)

    is_available = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Vehicle id={self.id} {self.year} {self.make} {self.model} available={self.is_available}>"

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "make": self.make,
            "model": self.model,
            "year": self.year,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "make": self.make,
            "model": self.model,
            "year": self.year,
            "price_cents": self.price_cents,
            "color": self.color,
            "description": self.description,
            "is_available": self.is_available,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
