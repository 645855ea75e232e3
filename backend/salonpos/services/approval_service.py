# Overview: Service-layer operations for the ticket approval workflow.

"""
Ticket Approval Workflow

STATE MACHINE:
    open -> pending_approval -> approved | rejected | auto_approved

    close:   open only; routes the ticket and starts the 48h deadline
    approve: pending_approval only; approver eligibility checked against
             the routing computed at close
    reject:  pending_approval only; performers other than the closer only;
             flags the ticket for admin review
    expire:  system only, once the deadline has passed

RULES:
1. The closer can never approve or reject the ticket they closed.
2. Tier check and closer exclusion are independent and both must pass.
3. Every write is a guarded UPDATE on the expected prior state; when it
   affects no row the current state is re-read and reported.
4. Retrying a transition that already landed is a no-op, not an error.
5. Each transition appends one activity entry in the same transaction.

Precondition failures are returned as TransitionResult(ok=False, code, reason)
so callers can show the reason; they are never raised.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..extensions import db
from ..models import Employee, SaleTicket, ApprovalStatus, ApprovalLevel, TERMINAL_STATUSES
from .activity_service import append_activity
from .approval_routing import TicketSnapshot, route
from .concurrency import guarded_update, run_with_retry
from salonpos import events
from salonpos.config import get_setting
from salonpos.time_utils import to_utc_z, utcnow


class ReasonCode:
    TICKET_NOT_FOUND = "TICKET_NOT_FOUND"
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    NOT_OPEN = "NOT_OPEN"
    NOT_PENDING = "NOT_PENDING"
    SELF_APPROVAL = "SELF_APPROVAL"
    CONFLICT_OF_INTEREST = "CONFLICT_OF_INTEREST"
    INSUFFICIENT_ROLE = "INSUFFICIENT_ROLE"
    NOT_ASSIGNED = "NOT_ASSIGNED"
    NOT_DUE = "NOT_DUE"
    REASON_REQUIRED = "REASON_REQUIRED"


@dataclass(frozen=True)
class ApprovalState:
    ticket_id: int
    status: str
    level: str | None
    reason: str | None
    requires_higher_approval: bool
    performed_and_closed_by_same_person: bool
    deadline: datetime | None

    @classmethod
    def of(cls, ticket: SaleTicket) -> "ApprovalState":
        return cls(
            ticket_id=ticket.id,
            status=ticket.approval_status,
            level=ticket.approval_required_level,
            reason=ticket.approval_reason,
            requires_higher_approval=bool(ticket.requires_higher_approval),
            performed_and_closed_by_same_person=bool(ticket.performed_and_closed_by_same_person),
            deadline=ticket.approval_deadline,
        )

    def to_dict(self) -> dict:
        return {
            "ticket_id": self.ticket_id,
            "approval_status": self.status,
            "approval_required_level": self.level,
            "approval_reason": self.reason,
            "requires_higher_approval": self.requires_higher_approval,
            "performed_and_closed_by_same_person": self.performed_and_closed_by_same_person,
            "approval_deadline": to_utc_z(self.deadline) if self.deadline else None,
        }


@dataclass(frozen=True)
class TransitionResult:
    ok: bool
    code: str | None = None
    reason: str | None = None
    noop: bool = False
    state: ApprovalState | None = None

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "code": self.code,
            "reason": self.reason,
            "noop": self.noop,
            "state": self.state.to_dict() if self.state else None,
        }


def _fail(code: str, reason: str, ticket: SaleTicket | None = None) -> TransitionResult:
    return TransitionResult(ok=False, code=code, reason=reason, state=ApprovalState.of(ticket) if ticket else None)


def _done(ticket: SaleTicket, *, noop: bool = False) -> TransitionResult:
    return TransitionResult(ok=True, noop=noop, state=ApprovalState.of(ticket))


def _reload(ticket_id: int) -> SaleTicket | None:
    db.session.rollback()
    return db.session.get(SaleTicket, ticket_id)


# =============================================================================
# ELIGIBILITY
# =============================================================================


def _closer_blocker(ticket: SaleTicket, approver: Employee, action: str) -> tuple[str, str] | None:
    if approver.id != ticket.closed_by_id:
        return None
    if ticket.performed_and_closed_by_same_person:
        return (
            ReasonCode.CONFLICT_OF_INTEREST,
            f"You cannot {action} this ticket because you both performed the service and closed it",
        )
    return ReasonCode.SELF_APPROVAL, f"You cannot {action} a ticket you closed"


def approval_blocker(ticket: SaleTicket, approver: Employee, action: str = "approve") -> tuple[str, str] | None:
    """
    Return (code, reason) when `approver` may not approve `ticket`, else None.

    Shared by approve and the pending-approvals listing.
    """
    roles = approver.role_set
    performers = ticket.performer_ids()

    blocker = _closer_blocker(ticket, approver, action)
    if blocker:
        return blocker

    level = ticket.approval_required_level
    if level == ApprovalLevel.MANAGER:
        if not roles.is_management:
            return (
                ReasonCode.INSUFFICIENT_ROLE,
                f"Only a Manager or Owner may {action} this ticket. Reason: {ticket.approval_reason}",
            )
    elif level == ApprovalLevel.SUPERVISOR:
        if not roles.is_supervisor_or_higher:
            return (
                ReasonCode.INSUFFICIENT_ROLE,
                f"Only a Supervisor or higher may {action} this ticket. Reason: {ticket.approval_reason}",
            )
    elif level == ApprovalLevel.TECHNICIAN:
        if approver.id not in performers and not roles.is_supervisor_or_higher:
            return (
                ReasonCode.NOT_ASSIGNED,
                f"You must have worked on this ticket to {action} it, or be a Supervisor or higher",
            )
    else:
        return ReasonCode.INSUFFICIENT_ROLE, "Invalid approval level configuration"

    if ticket.performed_and_closed_by_same_person and approver.id in performers and not roles.is_management:
        return (
            ReasonCode.CONFLICT_OF_INTEREST,
            f"Only a Manager or Owner may {action} a ticket performed and closed by the same person",
        )

    return None


def rejection_blocker(ticket: SaleTicket, approver: Employee) -> tuple[str, str] | None:
    """Only a performer on the ticket who did not close it may reject it."""
    blocker = _closer_blocker(ticket, approver, "reject")
    if blocker:
        return blocker
    if approver.id not in ticket.performer_ids():
        return ReasonCode.NOT_ASSIGNED, "You are not assigned to this ticket"
    return None


# =============================================================================
# TRANSITIONS
# =============================================================================


def _close_ticket(ticket_id: int, closer_id: int, *, now: datetime | None = None) -> TransitionResult:
    """
    Close an open ticket and route it for approval (open -> pending_approval).

    Routing uses the closer's roles at this instant; they are snapshotted onto
    the ticket and never re-evaluated.
    """
    now = now or utcnow()

    ticket = db.session.get(SaleTicket, ticket_id)
    if not ticket:
        return _fail(ReasonCode.TICKET_NOT_FOUND, "Ticket not found")

    closer = db.session.get(Employee, closer_id)
    if not closer:
        return _fail(ReasonCode.EMPLOYEE_NOT_FOUND, "Closer not found", ticket)

    if not ticket.is_open:
        if ticket.closed_by_id == closer_id:
            return _done(ticket, noop=True)
        return _fail(ReasonCode.NOT_OPEN, "Ticket is already closed", ticket)

    roles = closer.role_set
    performer_ids = ticket.performer_ids()
    decision = route(TicketSnapshot.build(
        ticket_id=ticket.id,
        closed_by=closer.id,
        closer_roles=roles,
        item_employee_ids=performer_ids,
    ))

    values = {
        "closed_at": now,
        "closed_by_id": closer.id,
        "closed_by_roles": roles.to_list(),
        "approval_status": ApprovalStatus.PENDING,
        "approval_deadline": now + timedelta(hours=get_setting("APPROVAL_WINDOW_HOURS")),
    }
    values.update(decision.to_dict())

    updated = guarded_update(
        SaleTicket,
        where={"id": ticket.id, "closed_at": None},
        values=values,
    )
    if not updated:
        ticket = _reload(ticket_id)
        if ticket.closed_by_id == closer_id:
            return _done(ticket, noop=True)
        return _fail(ReasonCode.NOT_OPEN, "Ticket is already closed", ticket)

    append_activity(
        ticket_id=ticket.id,
        action="closed",
        description=f"Ticket closed; {decision.level} approval required ({decision.reason})",
        employee_id=closer.id,
        changes=decision.to_dict(),
        occurred_at=now,
    )

    events.ticket_closed.send(
        None,
        store_id=ticket.store_id,
        ticket_id=ticket.id,
        performer_ids=sorted(performer_ids),
    )

    db.session.commit()
    return _done(db.session.get(SaleTicket, ticket_id))


def _approve_ticket(ticket_id: int, approver_id: int, *, now: datetime | None = None) -> TransitionResult:
    """pending_approval -> approved."""
    now = now or utcnow()

    ticket = db.session.get(SaleTicket, ticket_id)
    if not ticket:
        return _fail(ReasonCode.TICKET_NOT_FOUND, "Ticket not found")

    approver = db.session.get(Employee, approver_id)
    if not approver or not approver.is_active:
        return _fail(ReasonCode.EMPLOYEE_NOT_FOUND, "Approver not found", ticket)

    if ticket.approval_status == ApprovalStatus.APPROVED and ticket.approved_by_id == approver.id:
        return _done(ticket, noop=True)
    if ticket.approval_status != ApprovalStatus.PENDING:
        return _fail(ReasonCode.NOT_PENDING, "Ticket is not pending approval", ticket)

    blocker = approval_blocker(ticket, approver)
    if blocker:
        return _fail(*blocker, ticket)

    updated = guarded_update(
        SaleTicket,
        where={"id": ticket.id, "approval_status": ApprovalStatus.PENDING},
        values={
            "approval_status": ApprovalStatus.APPROVED,
            "approved_by_id": approver.id,
            "approved_at": now,
        },
    )
    if not updated:
        ticket = _reload(ticket_id)
        if ticket.approval_status == ApprovalStatus.APPROVED and ticket.approved_by_id == approver_id:
            return _done(ticket, noop=True)
        return _fail(ReasonCode.NOT_PENDING, "Ticket is not pending approval", ticket)

    append_activity(
        ticket_id=ticket.id,
        action="approved",
        description="Ticket approved",
        employee_id=approver.id,
        occurred_at=now,
    )

    db.session.commit()
    return _done(db.session.get(SaleTicket, ticket_id))


def _reject_ticket(
    ticket_id: int,
    approver_id: int,
    reason: str | None,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """pending_approval -> rejected; the ticket is flagged for admin review."""
    now = now or utcnow()

    ticket = db.session.get(SaleTicket, ticket_id)
    if not ticket:
        return _fail(ReasonCode.TICKET_NOT_FOUND, "Ticket not found")

    approver = db.session.get(Employee, approver_id)
    if not approver or not approver.is_active:
        return _fail(ReasonCode.EMPLOYEE_NOT_FOUND, "Approver not found", ticket)

    if ticket.approval_status == ApprovalStatus.REJECTED and ticket.rejected_by_id == approver.id:
        return _done(ticket, noop=True)
    if ticket.approval_status != ApprovalStatus.PENDING:
        return _fail(ReasonCode.NOT_PENDING, "Ticket is not pending approval", ticket)

    reason = (reason or "").strip()
    if not reason:
        return _fail(ReasonCode.REASON_REQUIRED, "A rejection reason is required", ticket)

    blocker = rejection_blocker(ticket, approver)
    if blocker:
        return _fail(*blocker, ticket)

    updated = guarded_update(
        SaleTicket,
        where={"id": ticket.id, "approval_status": ApprovalStatus.PENDING},
        values={
            "approval_status": ApprovalStatus.REJECTED,
            "rejected_by_id": approver.id,
            "rejected_at": now,
            "rejection_reason": reason,
            "requires_admin_review": True,
        },
    )
    if not updated:
        ticket = _reload(ticket_id)
        if ticket.approval_status == ApprovalStatus.REJECTED and ticket.rejected_by_id == approver_id:
            return _done(ticket, noop=True)
        return _fail(ReasonCode.NOT_PENDING, "Ticket is not pending approval", ticket)

    append_activity(
        ticket_id=ticket.id,
        action="rejected",
        description="Ticket rejected and sent for admin review",
        employee_id=approver.id,
        changes={"rejection_reason": reason},
        occurred_at=now,
    )

    db.session.commit()
    return _done(db.session.get(SaleTicket, ticket_id))


def _expire_ticket(ticket_id: int, *, now: datetime | None = None) -> TransitionResult:
    """System transition: pending_approval -> auto_approved once the deadline passed."""
    now = now or utcnow()

    ticket = db.session.get(SaleTicket, ticket_id)
    if not ticket:
        return _fail(ReasonCode.TICKET_NOT_FOUND, "Ticket not found")

    if ticket.approval_status in TERMINAL_STATUSES:
        return _done(ticket, noop=True)
    if ticket.approval_status != ApprovalStatus.PENDING:
        return _fail(ReasonCode.NOT_PENDING, "Ticket is not pending approval", ticket)
    if ticket.approval_deadline is None or now < ticket.approval_deadline:
        return _fail(ReasonCode.NOT_DUE, "Approval deadline has not passed", ticket)

    updated = guarded_update(
        SaleTicket,
        where={"id": ticket.id, "approval_status": ApprovalStatus.PENDING},
        values={
            "approval_status": ApprovalStatus.AUTO_APPROVED,
            "approved_at": now,
        },
    )
    if not updated:
        return _done(_reload(ticket_id), noop=True)

    append_activity(
        ticket_id=ticket.id,
        action="auto_approved",
        description="Ticket auto-approved after approval deadline passed",
        changes={"approval_deadline": to_utc_z(ticket.approval_deadline)},
        occurred_at=now,
    )

    db.session.commit()
    return _done(db.session.get(SaleTicket, ticket_id))


def close_ticket(ticket_id: int, closer_id: int, *, now: datetime | None = None) -> TransitionResult:
    now = now or utcnow()

    def _op():
        return _close_ticket(ticket_id, closer_id, now=now)

    return run_with_retry(_op)


def approve_ticket(ticket_id: int, approver_id: int, *, now: datetime | None = None) -> TransitionResult:
    now = now or utcnow()

    def _op():
        return _approve_ticket(ticket_id, approver_id, now=now)

    return run_with_retry(_op)


def reject_ticket(
    ticket_id: int,
    approver_id: int,
    reason: str | None,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    now = now or utcnow()

    def _op():
        return _reject_ticket(ticket_id, approver_id, reason, now=now)

    return run_with_retry(_op)


def expire_ticket(ticket_id: int, *, now: datetime | None = None) -> TransitionResult:
    now = now or utcnow()

    def _op():
        return _expire_ticket(ticket_id, now=now)

    return run_with_retry(_op)


# =============================================================================
# QUERIES
# =============================================================================


def _pending_row(ticket: SaleTicket, now: datetime) -> dict:
    row = ticket.to_dict()
    row["hours_remaining"] = round((ticket.approval_deadline - now).total_seconds() / 3600, 2)
    row["closed_by_name"] = ticket.closed_by.display_name if ticket.closed_by else "Unknown"
    row["technician_names"] = ", ".join(sorted({item.employee.display_name for item in ticket.items}))
    return row


def get_pending_approvals(
    *,
    store_id: int,
    employee_id: int | None = None,
    level: str | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """
    Tickets awaiting approval at a store, soonest deadline first.

    With employee_id, only tickets that employee could approve right now.
    With level, only tickets routed to that level.
    """
    now = now or utcnow()

    query = db.session.query(SaleTicket).filter(
        SaleTicket.store_id == store_id,
        SaleTicket.approval_status == ApprovalStatus.PENDING,
        SaleTicket.approval_deadline > now,
    )
    if level:
        query = query.filter(SaleTicket.approval_required_level == level)
    tickets = query.order_by(SaleTicket.approval_deadline.asc(), SaleTicket.id.asc()).all()

    if employee_id is not None:
        employee = db.session.get(Employee, employee_id)
        if not employee or not employee.is_active:
            return []
        tickets = [t for t in tickets if approval_blocker(t, employee) is None]

    return [_pending_row(t, now) for t in tickets]


def get_tickets_for_admin_review(*, store_id: int) -> list[SaleTicket]:
    return (
        db.session.query(SaleTicket)
        .filter(
            SaleTicket.store_id == store_id,
            SaleTicket.approval_status == ApprovalStatus.REJECTED,
            SaleTicket.requires_admin_review.is_(True),
        )
        .order_by(SaleTicket.rejected_at.asc())
        .all()
    )


def mark_reviewed(ticket_id: int, reviewer_id: int, *, now: datetime | None = None) -> TransitionResult:
    """Clear the admin-review flag on a rejected ticket (Admin tier or Owner)."""
    now = now or utcnow()

    ticket = db.session.get(SaleTicket, ticket_id)
    if not ticket:
        return _fail(ReasonCode.TICKET_NOT_FOUND, "Ticket not found")

    reviewer = db.session.get(Employee, reviewer_id)
    if not reviewer or not reviewer.is_active:
        return _fail(ReasonCode.EMPLOYEE_NOT_FOUND, "Reviewer not found", ticket)
    if not reviewer.role_set.is_admin:
        return _fail(ReasonCode.INSUFFICIENT_ROLE, "Only an Admin or Owner may review rejected tickets", ticket)

    if ticket.approval_status != ApprovalStatus.REJECTED:
        return _fail(ReasonCode.NOT_PENDING, "Only rejected tickets can be reviewed", ticket)
    if not ticket.requires_admin_review:
        return _done(ticket, noop=True)

    updated = guarded_update(
        SaleTicket,
        where={"id": ticket.id, "requires_admin_review": True},
        values={
            "requires_admin_review": False,
            "reviewed_by_id": reviewer.id,
            "reviewed_at": now,
        },
    )
    if not updated:
        return _done(_reload(ticket_id), noop=True)

    append_activity(
        ticket_id=ticket.id,
        action="reviewed",
        description="Rejected ticket reviewed by admin",
        employee_id=reviewer.id,
        occurred_at=now,
    )

    db.session.commit()
    return _done(db.session.get(SaleTicket, ticket_id))
