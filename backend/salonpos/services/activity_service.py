# Overview: Service-layer operations for the ticket activity log.

"""
Ticket Activity Log Invariants

- Append-only: no updates or deletes of existing entries.
- Entries are written inside the same DB transaction as the change they record.
- System-driven actions carry employee_id=None and actor="system".
"""

from __future__ import annotations

from typing import Optional
from datetime import datetime

from ..extensions import db
from ..models import Employee, TicketActivityLog
from salonpos.time_utils import utcnow

SYSTEM_ACTOR = "system"


def append_activity(
    *,
    ticket_id: int,
    action: str,
    description: str,
    employee_id: int | None = None,
    changes: Optional[dict] = None,
    occurred_at: Optional[datetime] = None,
) -> TicketActivityLog:
    """Append one activity entry. Flushes, never commits."""
    actor = SYSTEM_ACTOR
    if employee_id is not None:
        employee = db.session.get(Employee, employee_id)
        actor = employee.display_name if employee else f"employee:{employee_id}"

    entry = TicketActivityLog(
        ticket_id=ticket_id,
        employee_id=employee_id,
        actor=actor,
        action=action,
        description=description,
        changes=changes or {},
        created_at=occurred_at or utcnow(),
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def list_activity(ticket_id: int) -> list[TicketActivityLog]:
    return (
        db.session.query(TicketActivityLog)
        .filter_by(ticket_id=ticket_id)
        .order_by(TicketActivityLog.created_at.asc(), TicketActivityLog.id.asc())
        .all()
    )
