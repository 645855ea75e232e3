from __future__ import annotations

from ..extensions import db
from salonpos.time_utils import to_utc_z


class Store(db.Model):
    """
    A salon location.

    Operating hours are stored as civil wall-clock strings keyed by lowercase
    weekday name ({"monday": "09:00", ...}) and interpreted in `timezone` at
    evaluation time, so DST is always applied for the actual date.
    A weekday missing from a map means the hour is unknown for that day.
    """
    __tablename__ = "stores"
    __table_args__ = (
        db.UniqueConstraint("code", name="uq_stores_code"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    code = db.Column(db.String(32), nullable=True, index=True)

    timezone = db.Column(db.String(64), nullable=False, default="America/New_York")
    opening_hours = db.Column(db.JSON, nullable=True)
    closing_hours = db.Column(db.JSON, nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Store id={self.id} name={self.name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "timezone": self.timezone,
            "opening_hours": self.opening_hours,
            "closing_hours": self.closing_hours,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
        }


class Service(db.Model):
    """Service menu entry. Only the duration is used here (queue ETA)."""
    __tablename__ = "services"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    name = db.Column(db.String(120), nullable=False)
    duration_min = db.Column(db.Integer, nullable=False, default=30)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    store = db.relationship("Store", backref=db.backref("services", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "name": self.name,
            "duration_min": self.duration_min,
            "price_cents": self.price_cents,
        }
