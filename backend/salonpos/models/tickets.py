from __future__ import annotations

from ..extensions import db
from salonpos.time_utils import to_utc_z


class ApprovalStatus:
    NONE = "none"
    PENDING = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    AUTO_APPROVED = "auto_approved"


TERMINAL_STATUSES = frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.AUTO_APPROVED})


class ApprovalLevel:
    TECHNICIAN = "technician"
    SUPERVISOR = "supervisor"
    MANAGER = "manager"


class SaleTicket(db.Model):
    """
    One customer visit at one store.

    LIFECYCLE:
    - open: closed_at is NULL, items may be edited
    - pending_approval: set exactly once, at close
    - approved / rejected / auto_approved: terminal

    closed_by_roles is the closer's role snapshot at close time. It is never
    rewritten, so later role changes cannot alter computed routing.
    completed_at marks "work done" (technician side) and is distinct from
    closed_at (receptionist side).
    """
    __tablename__ = "sale_tickets"
    __table_args__ = (
        db.Index("ix_sale_tickets_store_status", "store_id", "approval_status"),
        db.Index("ix_sale_tickets_approval_deadline", "approval_status", "approval_deadline"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    ticket_no = db.Column(db.String(32), nullable=True)

    opened_at = db.Column(db.DateTime(timezone=True), nullable=False)
    opened_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)

    # Close (receptionist side)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    closed_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    closed_by_roles = db.Column(db.JSON, nullable=True)

    # Work done (technician side)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)

    # Approval
    approval_status = db.Column(db.String(24), nullable=False, default=ApprovalStatus.NONE, index=True)
    approval_deadline = db.Column(db.DateTime(timezone=True), nullable=True)
    approval_required_level = db.Column(db.String(16), nullable=True)
    approval_reason = db.Column(db.String(255), nullable=True)
    requires_higher_approval = db.Column(db.Boolean, nullable=False, default=False)
    performed_and_closed_by_same_person = db.Column(db.Boolean, nullable=False, default=False)
    approved_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    # Rejected tickets go to admin review
    requires_admin_review = db.Column(db.Boolean, nullable=False, default=False)
    reviewed_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    store = db.relationship("Store", backref=db.backref("tickets", lazy=True))
    closed_by = db.relationship("Employee", foreign_keys=[closed_by_id])
    approved_by = db.relationship("Employee", foreign_keys=[approved_by_id])

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.closed_at is None

    def performer_ids(self) -> set[int]:
        return {item.employee_id for item in self.items}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "ticket_no": self.ticket_no,
            "opened_at": to_utc_z(self.opened_at),
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "closed_by_id": self.closed_by_id,
            "closed_by_roles": self.closed_by_roles,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "completed_by_id": self.completed_by_id,
            "approval_status": self.approval_status,
            "approval_deadline": to_utc_z(self.approval_deadline) if self.approval_deadline else None,
            "approval_required_level": self.approval_required_level,
            "approval_reason": self.approval_reason,
            "requires_higher_approval": self.requires_higher_approval,
            "performed_and_closed_by_same_person": self.performed_and_closed_by_same_person,
            "approved_by_id": self.approved_by_id,
            "approved_at": to_utc_z(self.approved_at) if self.approved_at else None,
            "rejected_by_id": self.rejected_by_id,
            "rejected_at": to_utc_z(self.rejected_at) if self.rejected_at else None,
            "rejection_reason": self.rejection_reason,
            "requires_admin_review": self.requires_admin_review,
            "reviewed_by_id": self.reviewed_by_id,
            "reviewed_at": to_utc_z(self.reviewed_at) if self.reviewed_at else None,
            "version_id": self.version_id,
        }


class TicketItem(db.Model):
    """One service line on a ticket; employee_id is the performer."""
    __tablename__ = "ticket_items"
    __table_args__ = (
        db.Index("ix_ticket_items_employee_completed", "employee_id", "completed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(db.Integer, db.ForeignKey("sale_tickets.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    service_id = db.Column(db.Integer, db.ForeignKey("services.id"), nullable=True)

    qty = db.Column(db.Integer, nullable=False, default=1)
    price_cents = db.Column(db.Integer, nullable=False, default=0)

    # Per-line completion (stops the service timer)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_by_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    ticket = db.relationship("SaleTicket", backref=db.backref("items", lazy=True))
    employee = db.relationship("Employee", foreign_keys=[employee_id])
    service = db.relationship("Service")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "employee_id": self.employee_id,
            "service_id": self.service_id,
            "qty": self.qty,
            "price_cents": self.price_cents,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "completed_by_id": self.completed_by_id,
        }


class TicketActivityLog(db.Model):
    """
    Append-only activity trail per ticket.

    employee_id is NULL for system actions (actor = "system").
    Entries are written in the same transaction as the change they record.
    """
    __tablename__ = "ticket_activity_log"
    __table_args__ = (
        db.Index("ix_ticket_activity_ticket_created", "ticket_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(db.Integer, db.ForeignKey("sale_tickets.id"), nullable=False, index=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=True)
    actor = db.Column(db.String(120), nullable=False)
    action = db.Column(db.String(24), nullable=False, index=True)
    description = db.Column(db.Text, nullable=False)
    changes = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    ticket = db.relationship("SaleTicket", backref=db.backref("activity", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "employee_id": self.employee_id,
            "actor": self.actor,
            "action": self.action,
            "description": self.description,
            "changes": self.changes or {},
            "created_at": to_utc_z(self.created_at),
        }
