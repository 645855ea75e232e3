# Overview: Service-layer operations for attendance check-in/check-out.

"""
Attendance Service (Session-Based)

WHY: Check-in opens an attendance session at one store; the ready queue and
the inactivity sweep both key off the open session. Sessions are closed
exactly once, by the employee or by a sweep.

Only a session of the current store-local day counts as open for check-in,
check-out and the queue. One left open from an earlier day is closed by the
closing sweep at that day's closing time.
"""

from __future__ import annotations

import logging
from datetime import datetime

from ..extensions import db
from ..models import AttendanceRecord, AttendanceStatus, Employee, EmployeeStore, Store
from .concurrency import guarded_update, run_with_retry
from .queue_service import get_open_session
from .schedule_service import ScheduleError, StoreSchedule
from salonpos.time_utils import hours_between, utcnow

logger = logging.getLogger(__name__)


class AttendanceError(ValueError):
    """Raised for invalid attendance operations."""
    pass


def _schedule_for(store_id: int) -> StoreSchedule:
    store = db.session.get(Store, store_id)
    if not store:
        raise AttendanceError("Store not found")
    try:
        return StoreSchedule.for_store(store)
    except ScheduleError as exc:
        raise AttendanceError(str(exc)) from exc


def check_in(*, employee_id: int, store_id: int, notes: str | None = None, now: datetime | None = None) -> AttendanceRecord:
    """
    Open a session. Checking in twice returns the open session unchanged.
    """
    now = now or utcnow()

    employee = db.session.get(Employee, employee_id)
    if not employee or not employee.is_active:
        raise AttendanceError("Employee not found")

    schedule = _schedule_for(store_id)

    assigned = db.session.query(EmployeeStore.id).filter_by(employee_id=employee_id, store_id=store_id).first()
    if not assigned:
        raise AttendanceError("Employee is not assigned to this store")

    existing = get_open_session(employee_id, store_id, work_date=schedule.local_date(now))
    if existing:
        return existing

    try:
        allowed = schedule.check_in_allowed(now)
    except ScheduleError as exc:
        raise AttendanceError(str(exc)) from exc
    if not allowed:
        raise AttendanceError("The store is not open for check-in yet")

    record = AttendanceRecord(
        employee_id=employee_id,
        store_id=store_id,
        work_date=schedule.local_date(now),
        check_in_time=now,
        last_activity_time=now,
        status=AttendanceStatus.CHECKED_IN,
        pay_type=employee.pay_type,
        notes=notes,
    )
    db.session.add(record)
    db.session.commit()
    logger.info("Employee %s checked in at store %s", employee_id, store_id)
    return record


def _check_out(employee_id: int, store_id: int, now: datetime) -> AttendanceRecord:
    schedule = _schedule_for(store_id)
    record = get_open_session(employee_id, store_id, work_date=schedule.local_date(now))
    if not record:
        raise AttendanceError("Employee is not checked in")

    updated = guarded_update(
        AttendanceRecord,
        where={"id": record.id, "status": AttendanceStatus.CHECKED_IN},
        values={
            "check_out_time": now,
            "status": AttendanceStatus.CHECKED_OUT,
            "total_hours": hours_between(record.check_in_time, now),
        },
    )
    if not updated:
        db.session.rollback()
        raise AttendanceError("Session was already closed")

    db.session.commit()
    logger.info("Employee %s checked out at store %s", employee_id, store_id)
    return db.session.get(AttendanceRecord, record.id)


def check_out(*, employee_id: int, store_id: int, now: datetime | None = None) -> AttendanceRecord:
    """Close the open session at the store with hours from check-in to now."""
    now = now or utcnow()

    def _op():
        return _check_out(employee_id, store_id, now)

    return run_with_retry(_op)


def get_current_status(employee_id: int, store_id: int, *, now: datetime | None = None) -> dict:
    """Today's open session at the store, if any."""
    now = now or utcnow()
    schedule = _schedule_for(store_id)
    record = get_open_session(employee_id, store_id, work_date=schedule.local_date(now))
    if not record:
        return {"status": AttendanceStatus.CHECKED_OUT, "record": None}
    return {"status": AttendanceStatus.CHECKED_IN, "record": record.to_dict()}
