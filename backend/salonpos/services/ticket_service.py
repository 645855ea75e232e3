# Overview: Ticket-editing hooks used by the collaborating UI; emits assignment events.

"""
Only the parts of ticket editing the core reacts to live here: opening a
ticket and attributing a service line to a performer. Everything else about
ticket editing (customer fields, prices, payments) belongs to the caller.
"""

from datetime import datetime

from ..extensions import db
from ..models import Employee, SaleTicket, Service, Store, TicketItem, ApprovalStatus
from .activity_service import append_activity
from salonpos import events
from salonpos.time_utils import utcnow


class TicketError(ValueError):
    """Raised for invalid ticket edits."""
    pass


def open_ticket(
    *,
    store_id: int,
    opened_by_id: int | None = None,
    ticket_no: str | None = None,
    now: datetime | None = None,
) -> SaleTicket:
    now = now or utcnow()
    if not db.session.get(Store, store_id):
        raise TicketError("Store not found")

    ticket = SaleTicket(
        store_id=store_id,
        ticket_no=ticket_no,
        opened_at=now,
        opened_by_id=opened_by_id,
        approval_status=ApprovalStatus.NONE,
    )
    db.session.add(ticket)
    db.session.flush()

    append_activity(
        ticket_id=ticket.id,
        action="created",
        description="Ticket opened",
        employee_id=opened_by_id,
        occurred_at=now,
    )

    db.session.commit()
    return ticket


def add_ticket_item(
    *,
    ticket_id: int,
    employee_id: int,
    service_id: int | None = None,
    qty: int = 1,
    price_cents: int | None = None,
    edited_by_id: int | None = None,
    now: datetime | None = None,
) -> TicketItem:
    """Attribute a service line to a performer on an open ticket."""
    now = now or utcnow()

    ticket = db.session.get(SaleTicket, ticket_id)
    if not ticket:
        raise TicketError("Ticket not found")
    if not ticket.is_open:
        raise TicketError("Cannot add services to a closed ticket")

    employee = db.session.get(Employee, employee_id)
    if not employee:
        raise TicketError("Employee not found")

    if qty < 1:
        raise TicketError("qty must be at least 1")

    service = None
    if service_id is not None:
        service = db.session.get(Service, service_id)
        if not service:
            raise TicketError("Service not found")

    if price_cents is None:
        price_cents = service.price_cents if service else 0

    item = TicketItem(
        ticket_id=ticket.id,
        employee_id=employee.id,
        service_id=service.id if service else None,
        qty=qty,
        price_cents=price_cents,
    )
    db.session.add(item)
    db.session.flush()

    append_activity(
        ticket_id=ticket.id,
        action="updated",
        description=f"Service assigned to {employee.display_name}",
        employee_id=edited_by_id,
        changes={"item_id": item.id, "employee_id": employee.id, "service_id": item.service_id},
        occurred_at=now,
    )

    events.ticket_item_assigned.send(
        None,
        store_id=ticket.store_id,
        ticket_id=ticket.id,
        employee_id=employee.id,
        item_id=item.id,
    )

    db.session.commit()
    return item
