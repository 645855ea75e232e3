# Overview: Service-layer operations for the technician ready queue.

"""
Technician Ready Queue

A technician is in exactly one of three states per store:

- ready:   holds a queue row; FIFO by ready_at
- busy:    has an uncompleted service line on an open, not-completed ticket
- neutral: neither

Rows are created only by join_ready_queue and destroyed by ticket assignment,
ticket close, an explicit leave, or the closing-time clear. Assignment evicts
the ready row first, so busy and ready never coexist.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

from ..extensions import db
from ..models import (
    AttendanceRecord,
    AttendanceStatus,
    Employee,
    EmployeeStore,
    SaleTicket,
    Service,
    Store,
    TechnicianQueueEntry,
    TicketItem,
    QueueStatus,
)
from .activity_service import append_activity
from .concurrency import guarded_update, run_with_retry
from .schedule_service import ScheduleError, StoreSchedule
from salonpos import events
from salonpos.time_utils import to_utc_z, utcnow

logger = logging.getLogger(__name__)


class QueueErrorCode:
    EMPLOYEE_NOT_FOUND = "EMPLOYEE_NOT_FOUND"
    STORE_NOT_FOUND = "STORE_NOT_FOUND"
    CHECK_IN_REQUIRED = "CHECK_IN_REQUIRED"
    OUTSIDE_CHECK_IN_WINDOW = "OUTSIDE_CHECK_IN_WINDOW"


@dataclass(frozen=True)
class QueueJoinResult:
    ok: bool
    error: str | None = None
    message: str | None = None
    entry: dict | None = None
    completed_ticket_ids: tuple = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "error": self.error,
            "message": self.message,
            "entry": self.entry,
            "completed_ticket_ids": list(self.completed_ticket_ids),
        }


def get_open_session(employee_id: int, store_id: int, *, work_date: date | None = None) -> AttendanceRecord | None:
    """
    Most recent checked-in attendance session at the store.

    With work_date, only a session of that store-local day counts; an
    earlier day's session left open is waiting for the closing sweep.
    """
    query = db.session.query(AttendanceRecord).filter_by(
        employee_id=employee_id,
        store_id=store_id,
        status=AttendanceStatus.CHECKED_IN,
    )
    if work_date is not None:
        query = query.filter(AttendanceRecord.work_date == work_date)
    return query.order_by(AttendanceRecord.check_in_time.desc()).first()


def _evict(employee_id: int, store_id: int) -> int:
    return db.session.query(TechnicianQueueEntry).filter_by(
        employee_id=employee_id,
        store_id=store_id,
    ).delete(synchronize_session=False)


# =============================================================================
# JOIN / LEAVE
# =============================================================================


def _complete_open_items(employee_id: int, store_id: int, now: datetime) -> list[int]:
    """
    Stop the timer on every open service line of this technician at the store.

    Parent tickets whose lines are now all complete get completed_at; they
    stay open (closing is a receptionist action). Returns completed ticket ids.
    """
    open_items = (
        db.session.query(TicketItem)
        .join(SaleTicket, SaleTicket.id == TicketItem.ticket_id)
        .filter(
            TicketItem.employee_id == employee_id,
            TicketItem.completed_at.is_(None),
            SaleTicket.store_id == store_id,
            SaleTicket.closed_at.is_(None),
        )
        .all()
    )
    if not open_items:
        return []

    item_ids = [item.id for item in open_items]
    ticket_ids = sorted({item.ticket_id for item in open_items})

    db.session.query(TicketItem).filter(
        TicketItem.id.in_(item_ids),
        TicketItem.completed_at.is_(None),
    ).update(
        {"completed_at": now, "completed_by_id": employee_id},
        synchronize_session=False,
    )

    completed = []
    for ticket_id in ticket_ids:
        remaining = db.session.query(TicketItem.id).filter(
            TicketItem.ticket_id == ticket_id,
            TicketItem.completed_at.is_(None),
        ).first()
        if remaining:
            continue
        updated = guarded_update(
            SaleTicket,
            where={"id": ticket_id, "completed_at": None, "closed_at": None},
            values={"completed_at": now, "completed_by_id": employee_id},
        )
        if updated:
            append_activity(
                ticket_id=ticket_id,
                action="completed",
                description="All services completed",
                employee_id=employee_id,
                occurred_at=now,
            )
            completed.append(ticket_id)

    return completed


def _join_ready_queue(employee_id: int, store_id: int, now: datetime) -> QueueJoinResult:
    employee = db.session.get(Employee, employee_id)
    if not employee or not employee.is_active:
        return QueueJoinResult(ok=False, error=QueueErrorCode.EMPLOYEE_NOT_FOUND, message="Employee not found")

    store = db.session.get(Store, store_id)
    if not store:
        return QueueJoinResult(ok=False, error=QueueErrorCode.STORE_NOT_FOUND, message="Store not found")

    try:
        schedule = StoreSchedule.for_store(store)
    except ScheduleError as exc:
        logger.warning("Store %s schedule unavailable, accepting any open session: %s", store_id, exc)
        schedule = None

    session = get_open_session(
        employee_id,
        store_id,
        work_date=schedule.local_date(now) if schedule else None,
    )
    if not session:
        return QueueJoinResult(
            ok=False,
            error=QueueErrorCode.CHECK_IN_REQUIRED,
            message="You must check in before joining the ready queue",
        )

    try:
        allowed = schedule is None or schedule.check_in_allowed(now)
    except ScheduleError as exc:
        # No usable opening time means no opening restriction
        logger.warning("Store %s opening hours unavailable, not restricting queue join: %s", store_id, exc)
        allowed = True
    if not allowed:
        return QueueJoinResult(
            ok=False,
            error=QueueErrorCode.OUTSIDE_CHECK_IN_WINDOW,
            message="The store is not open for check-in yet",
        )

    completed = _complete_open_items(employee_id, store_id, now)

    _evict(employee_id, store_id)
    entry = TechnicianQueueEntry(
        employee_id=employee_id,
        store_id=store_id,
        status=QueueStatus.READY,
        ready_at=now,
    )
    db.session.add(entry)

    guarded_update(
        AttendanceRecord,
        where={"id": session.id, "status": AttendanceStatus.CHECKED_IN},
        values={"last_activity_time": now},
    )

    db.session.commit()
    logger.info("Employee %s joined ready queue at store %s", employee_id, store_id)
    return QueueJoinResult(ok=True, entry=entry.to_dict(), completed_ticket_ids=tuple(completed))


def join_ready_queue(employee_id: int, store_id: int, *, now: datetime | None = None) -> QueueJoinResult:
    """
    "I'm ready": finish open services and take a fresh place at the back of the queue.

    Requires an open attendance session at the store and an open check-in
    window (opening time minus CHECK_IN_WINDOW_MINUTES, store-local).
    """
    now = now or utcnow()

    def _op():
        return _join_ready_queue(employee_id, store_id, now)

    return run_with_retry(_op)


def leave_ready_queue(employee_id: int, store_id: int) -> None:
    _evict(employee_id, store_id)
    db.session.commit()


def check_queue_status(employee_id: int, store_id: int) -> bool:
    """True when the employee currently holds a ready entry at the store."""
    return db.session.query(TechnicianQueueEntry.id).filter_by(
        employee_id=employee_id,
        store_id=store_id,
        status=QueueStatus.READY,
    ).first() is not None


def assign_to_ticket(employee_id: int, ticket_id: int) -> int:
    """Evict the employee's ready entry at the ticket's store. Returns rows removed."""
    ticket = db.session.get(SaleTicket, ticket_id)
    if not ticket:
        return 0
    removed = _evict(employee_id, ticket.store_id)
    db.session.commit()
    return removed


def on_ticket_closed(ticket_id: int) -> int:
    """Evict every performer of the ticket from the store's queue. Returns rows removed."""
    ticket = db.session.get(SaleTicket, ticket_id)
    if not ticket:
        return 0
    removed = _evict_performers(ticket.store_id, ticket.performer_ids())
    db.session.commit()
    return removed


def _evict_performers(store_id: int, performer_ids) -> int:
    performer_ids = list(performer_ids)
    if not performer_ids:
        return 0
    return db.session.query(TechnicianQueueEntry).filter(
        TechnicianQueueEntry.store_id == store_id,
        TechnicianQueueEntry.employee_id.in_(performer_ids),
    ).delete(synchronize_session=False)


def clear_store_queue(store_id: int) -> int:
    """Delete every queue row at the store. Flushes only; the caller commits."""
    return db.session.query(TechnicianQueueEntry).filter_by(store_id=store_id).delete(synchronize_session=False)


def clear_stale_entries(store_id: int, *, before: datetime) -> int:
    """Delete queue rows at the store that became ready before `before`. Flushes only."""
    return db.session.query(TechnicianQueueEntry).filter(
        TechnicianQueueEntry.store_id == store_id,
        TechnicianQueueEntry.ready_at < before,
    ).delete(synchronize_session=False)


# =============================================================================
# EVENT RECEIVERS (run inside the sender's transaction; never commit)
# =============================================================================


@events.ticket_item_assigned.connect
def _on_ticket_item_assigned(sender, *, store_id, employee_id, **kwargs):
    _evict(employee_id, store_id)


@events.ticket_closed.connect
def _on_ticket_closed(sender, *, store_id, performer_ids, **kwargs):
    _evict_performers(store_id, performer_ids)


# =============================================================================
# ORDERED VIEW
# =============================================================================


def _eligible_technicians(store_id: int) -> list[Employee]:
    employees = (
        db.session.query(Employee)
        .join(EmployeeStore, EmployeeStore.employee_id == Employee.id)
        .filter(EmployeeStore.store_id == store_id)
        .all()
    )
    return [e for e in employees if e.is_active and e.role_set.performs_services]


def _open_work_by_employee(store_id: int) -> dict[int, dict]:
    rows = (
        db.session.query(TicketItem, SaleTicket, Service)
        .join(SaleTicket, SaleTicket.id == TicketItem.ticket_id)
        .outerjoin(Service, Service.id == TicketItem.service_id)
        .filter(
            SaleTicket.store_id == store_id,
            SaleTicket.closed_at.is_(None),
            SaleTicket.completed_at.is_(None),
            TicketItem.completed_at.is_(None),
        )
        .all()
    )

    work: dict[int, dict] = {}
    for item, ticket, service in rows:
        w = work.setdefault(item.employee_id, {
            "ticket_ids": set(),
            "oldest_opened_at": None,
            "oldest_ticket_id": None,
            "duration_min": 0,
        })
        w["ticket_ids"].add(ticket.id)
        if w["oldest_opened_at"] is None or (ticket.opened_at, ticket.id) < (w["oldest_opened_at"], w["oldest_ticket_id"]):
            w["oldest_opened_at"] = ticket.opened_at
            w["oldest_ticket_id"] = ticket.id
        if service is not None:
            w["duration_min"] += (service.duration_min or 0) * (item.qty or 1)
    return work


_STATUS_RANK = {QueueStatus.READY: 0, QueueStatus.NEUTRAL: 1, QueueStatus.BUSY: 2}


def get_ordered_technicians(store_id: int) -> list[dict]:
    """
    Every eligible technician at the store with their queue status.

    Order: ready (by ready_at) before neutral before busy (by oldest open
    ticket); ties by display name.
    """
    technicians = _eligible_technicians(store_id)
    entries = {
        e.employee_id: e
        for e in db.session.query(TechnicianQueueEntry).filter_by(store_id=store_id, status=QueueStatus.READY).all()
    }
    work = _open_work_by_employee(store_id)

    rows = []
    for tech in technicians:
        w = work.get(tech.id)
        entry = entries.get(tech.id)
        if w:
            status = QueueStatus.BUSY
        elif entry:
            status = QueueStatus.READY
        else:
            status = QueueStatus.NEUTRAL

        eta = None
        if w and w["oldest_opened_at"] is not None:
            eta = w["oldest_opened_at"] + timedelta(minutes=w["duration_min"])

        rows.append({
            "employee_id": tech.id,
            "display_name": tech.display_name,
            "status": status,
            "ready_at": entry.ready_at if status == QueueStatus.READY else None,
            "current_ticket_id": w["oldest_ticket_id"] if w else None,
            "open_ticket_count": len(w["ticket_ids"]) if w else 0,
            "ticket_start_time": w["oldest_opened_at"] if w else None,
            "estimated_duration_min": w["duration_min"] if w else 0,
            "eta": eta,
        })

    def sort_key(row):
        if row["status"] == QueueStatus.READY:
            secondary = row["ready_at"]
        elif row["status"] == QueueStatus.BUSY:
            secondary = row["ticket_start_time"]
        else:
            secondary = None
        return (_STATUS_RANK[row["status"]], secondary or datetime.min, row["display_name"].lower())

    rows.sort(key=sort_key)

    queue_position = 0
    for position, row in enumerate(rows, start=1):
        row["position"] = position
        if row["status"] == QueueStatus.READY:
            queue_position += 1
            row["queue_position"] = queue_position
        else:
            row["queue_position"] = None
        for key in ("ready_at", "ticket_start_time", "eta"):
            row[key] = to_utc_z(row[key])

    return rows
