from __future__ import annotations

from ..extensions import db
from salonpos.roles import RoleSet
from salonpos.time_utils import to_utc_z


class Employee(db.Model):
    """
    Salon employee.

    `roles` is a JSON list of job role names; roles are concurrent, never
    exclusive. `permission_tier` is the coarse Technician/Receptionist/Admin
    grant. `pay_type` is snapshotted onto each attendance session.
    """
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    legal_name = db.Column(db.String(255), nullable=False)
    display_name = db.Column(db.String(120), nullable=False, index=True)

    roles = db.Column(db.JSON, nullable=False, default=list)
    permission_tier = db.Column(db.String(32), nullable=False, default="Technician")

    # active / inactive
    status = db.Column(db.String(16), nullable=False, default="active", index=True)

    # hourly / daily
    pay_type = db.Column(db.String(16), nullable=False, default="hourly")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def role_set(self) -> RoleSet:
        return RoleSet.of(self.roles or [], self.permission_tier)

    @property
    def is_active(self) -> bool:
        return (self.status or "").lower() == "active"

    def __repr__(self) -> str:
        return f"<Employee id={self.id} display_name={self.display_name!r}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "legal_name": self.legal_name,
            "display_name": self.display_name,
            "roles": self.role_set.to_list(),
            "permission_tier": self.permission_tier,
            "status": self.status,
            "pay_type": self.pay_type,
            "created_at": to_utc_z(self.created_at),
        }


class EmployeeStore(db.Model):
    """Assignment of an employee to a store (an employee may work at several)."""
    __tablename__ = "employee_stores"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "store_id", name="uq_employee_stores"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)

    employee = db.relationship("Employee", backref=db.backref("store_assignments", lazy=True))
    store = db.relationship("Store", backref=db.backref("employee_assignments", lazy=True))
