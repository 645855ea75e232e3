# Overview: Pure approval routing for closed tickets; no database access.

"""
Approval Routing

================================================================================
PURPOSE: Decide the minimum approver level for a ticket at the instant it closes
================================================================================

Escalation fires ONLY on true conflict of interest: exactly one person
performed every line on the ticket AND that same person closed it
("solo control"). A Supervisor who merely closes someone else's work, or who
shares the work with another performer, is routed to ordinary peer approval.

RULES (first match wins):
1. Supervisor closer with solo control              -> manager
2. Receptionist closer who can also perform
   (Technician or Spa Expert) with solo control     -> supervisor
3. Technician + Receptionist closer with solo control -> manager
   (unreachable: every such closer already matches rule 2)
4. Everything else                                  -> technician (peer)

The decision is computed once, from the closer's roles at close time, and is
never recomputed afterwards.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from salonpos.roles import Role, RoleSet
from ..models import ApprovalLevel


REASON_SUPERVISOR_SOLO = "Supervisor performed and closed alone"
REASON_RECEPTIONIST_SOLO = "Receptionist with service capability performed and closed alone"
REASON_DUAL_ROLE_SOLO = "Dual-role employee performed and closed alone"
REASON_STANDARD = "Standard peer approval"


@dataclass(frozen=True)
class TicketSnapshot:
    """Read-only view of a ticket at close time."""
    ticket_id: int | None
    closed_by: int
    closer_roles: RoleSet
    performer_ids: frozenset = field(default_factory=frozenset)

    @classmethod
    def build(cls, *, ticket_id, closed_by: int, closer_roles: RoleSet, item_employee_ids: Iterable[int]):
        return cls(
            ticket_id=ticket_id,
            closed_by=closed_by,
            closer_roles=closer_roles,
            performer_ids=frozenset(item_employee_ids),
        )

    @property
    def performer_count(self) -> int:
        return len(self.performer_ids)

    @property
    def closer_is_performer(self) -> bool:
        return self.closed_by in self.performer_ids

    @property
    def solo_control(self) -> bool:
        return self.performer_count == 1 and self.closer_is_performer


@dataclass(frozen=True)
class RoutingDecision:
    level: str
    reason: str
    requires_higher: bool
    performed_and_closed_by_same_person: bool

    def to_dict(self) -> dict:
        return {
            "approval_required_level": self.level,
            "approval_reason": self.reason,
            "requires_higher_approval": self.requires_higher,
            "performed_and_closed_by_same_person": self.performed_and_closed_by_same_person,
        }


def route(snapshot: TicketSnapshot) -> RoutingDecision:
    """Compute the approval requirement for a ticket being closed."""
    roles = snapshot.closer_roles
    solo = snapshot.solo_control

    if solo and roles.has(Role.SUPERVISOR):
        level, reason, higher = ApprovalLevel.MANAGER, REASON_SUPERVISOR_SOLO, True
    elif solo and roles.has(Role.RECEPTIONIST) and (roles.has(Role.TECHNICIAN) or roles.has(Role.SPA_EXPERT)):
        level, reason, higher = ApprovalLevel.SUPERVISOR, REASON_RECEPTIONIST_SOLO, True
    elif solo and roles.has(Role.TECHNICIAN, Role.RECEPTIONIST):
        level, reason, higher = ApprovalLevel.MANAGER, REASON_DUAL_ROLE_SOLO, True
    else:
        level, reason, higher = ApprovalLevel.TECHNICIAN, REASON_STANDARD, False

    return RoutingDecision(
        level=level,
        reason=reason,
        requires_higher=higher,
        performed_and_closed_by_same_person=solo,
    )
