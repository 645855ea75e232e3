from __future__ import annotations

from ..extensions import db
from salonpos.time_utils import to_utc_z


class QueueStatus:
    READY = "ready"
    BUSY = "busy"
    # No row at all
    NEUTRAL = "neutral"


class TechnicianQueueEntry(db.Model):
    """
    Ready-queue membership for one technician at one store.

    At most one row per (employee, store). Rows are created by "I'm ready"
    and destroyed by queue clears, ticket assignment, ticket close or an
    explicit leave. ready_at defines FIFO order.
    """
    __tablename__ = "technician_ready_queue"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "store_id", name="uq_ready_queue_employee_store"),
        db.Index("ix_ready_queue_store_ready_at", "store_id", "ready_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=QueueStatus.READY)
    ready_at = db.Column(db.DateTime(timezone=True), nullable=False)

    employee = db.relationship("Employee", backref=db.backref("queue_entries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "store_id": self.store_id,
            "status": self.status,
            "ready_at": to_utc_z(self.ready_at),
        }
