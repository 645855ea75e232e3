from __future__ import annotations

from ..extensions import db
from salonpos.time_utils import to_utc_z


class AttendanceStatus:
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    AUTO_CHECKED_OUT = "auto_checked_out"


class PayType:
    HOURLY = "hourly"
    DAILY = "daily"


class AttendanceRecord(db.Model):
    """
    One attendance session for an employee at a store.

    LIFECYCLE:
    - checked_in: session open (check_out_time is NULL)
    - checked_out: closed by the employee
    - auto_checked_out: closed by the closing-time or inactivity sweep

    Several sessions per work day are allowed. A session is closed exactly
    once; every close is a conditional update on status = checked_in.
    """
    __tablename__ = "attendance_records"
    __table_args__ = (
        db.Index("ix_attendance_employee_store_status", "employee_id", "store_id", "status"),
        db.Index("ix_attendance_store_date", "store_id", "work_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    # Store-local calendar date of check-in
    work_date = db.Column(db.Date, nullable=False)

    check_in_time = db.Column(db.DateTime(timezone=True), nullable=False)
    check_out_time = db.Column(db.DateTime(timezone=True), nullable=True)
    last_activity_time = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(24), nullable=False, default=AttendanceStatus.CHECKED_IN, index=True)
    total_hours = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=True)

    # Pay type at check-in
    pay_type = db.Column(db.String(16), nullable=False, default=PayType.HOURLY)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    employee = db.relationship("Employee", backref=db.backref("attendance_records", lazy=True))
    store = db.relationship("Store", backref=db.backref("attendance_records", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "store_id": self.store_id,
            "work_date": self.work_date.isoformat() if self.work_date else None,
            "check_in_time": to_utc_z(self.check_in_time),
            "check_out_time": to_utc_z(self.check_out_time) if self.check_out_time else None,
            "last_activity_time": to_utc_z(self.last_activity_time) if self.last_activity_time else None,
            "status": self.status,
            "total_hours": float(self.total_hours) if self.total_hours is not None else None,
            "pay_type": self.pay_type,
            "notes": self.notes,
        }
