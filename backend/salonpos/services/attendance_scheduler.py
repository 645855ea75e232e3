# Overview: Periodic attendance sweeps (closing-time and daily-pay inactivity checkout).

"""
Attendance Scheduler

Two independent sweeps, both safe to run repeatedly and concurrently:

- run_closing_checkout: within CLOSING_TOLERANCE_MINUTES after a store's
  closing time (store-local, DST-aware), auto-checks-out every open session
  of the day at the closing instant and clears the store's ready queue.
  Sessions left open from an earlier day are closed on any run at that
  day's own closing instant.
- run_inactivity_checkout: daily-paid sessions whose last completed service
  today is more than DAILY_INACTIVITY_HOURS old are auto-checked-out at that
  last completion.

RULES:
- Every close is a guarded update on status = checked_in; a session closed
  by anyone else is left untouched.
- A store whose schedule cannot be resolved is skipped, never guessed.
- A failure on one store or session is logged and does not stop the sweep.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import AttendanceRecord, AttendanceStatus, PayType, SaleTicket, Store, TicketItem
from .concurrency import guarded_update
from .queue_service import clear_stale_entries, clear_store_queue
from .schedule_service import ScheduleError, StoreSchedule
from salonpos.config import get_setting
from salonpos.time_utils import hours_between, local_to_utc, utcnow

logger = logging.getLogger(__name__)


def _auto_checkout(record_id: int, *, check_in_time: datetime, checkout_at: datetime) -> int:
    return guarded_update(
        AttendanceRecord,
        where={"id": record_id, "status": AttendanceStatus.CHECKED_IN},
        values={
            "check_out_time": checkout_at,
            "status": AttendanceStatus.AUTO_CHECKED_OUT,
            "total_hours": hours_between(check_in_time, checkout_at),
        },
    )


def _active_stores() -> list[Store]:
    return db.session.query(Store).filter_by(is_active=True).order_by(Store.id).all()


# =============================================================================
# CLOSING-TIME CHECKOUT
# =============================================================================


def _close_missed_days(schedule: StoreSchedule, today: date, summary: dict) -> None:
    """
    Close sessions left open from earlier store-local days at their own day's
    closing instant, and drop queue rows from before today.
    """
    store_id = schedule.store_id
    stale = (
        db.session.query(AttendanceRecord.id, AttendanceRecord.check_in_time, AttendanceRecord.work_date)
        .filter(
            AttendanceRecord.store_id == store_id,
            AttendanceRecord.status == AttendanceStatus.CHECKED_IN,
            AttendanceRecord.work_date < today,
        )
        .order_by(AttendanceRecord.work_date, AttendanceRecord.id)
        .all()
    )
    for record_id, check_in_time, work_date in stale:
        try:
            closing_at = schedule.closing_on(work_date)
        except ScheduleError as exc:
            logger.warning("Cannot close attendance record %s from %s: %s", record_id, work_date, exc)
            summary["errors"] += 1
            continue
        try:
            summary["stale_sessions_checked_out"] += _auto_checkout(
                record_id,
                check_in_time=check_in_time,
                checkout_at=closing_at,
            )
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            summary["errors"] += 1
            logger.exception("Missed-day checkout failed for attendance record %s", record_id)

    day_start = local_to_utc(today, datetime.min.time(), schedule.tz_name)
    try:
        summary["queue_entries_cleared"] += clear_stale_entries(store_id, before=day_start)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        summary["errors"] += 1
        logger.exception("Stale ready queue clear failed for store %s", store_id)

    if stale:
        logger.info("Store %s: %s sessions from earlier days were still open", store_id, len(stale))


def run_closing_checkout(*, now: datetime | None = None) -> dict:
    """
    Close today's open sessions and clear the queue inside the closing window.

    Sessions left open from an earlier day (a missed window) are closed on
    every run, whatever the time, at that day's own closing instant.
    """
    now = now or utcnow()
    tolerance = timedelta(minutes=get_setting("CLOSING_TOLERANCE_MINUTES"))

    summary = {
        "stores_closed": [],
        "sessions_checked_out": 0,
        "stale_sessions_checked_out": 0,
        "queue_entries_cleared": 0,
        "skipped_stores": [],
        "errors": 0,
    }

    for store in _active_stores():
        store_id = store.id
        try:
            schedule = StoreSchedule.for_store(store)
        except ScheduleError as exc:
            logger.warning("Skipping closing checkout for store %s: %s", store_id, exc)
            summary["skipped_stores"].append(store_id)
            continue

        today = schedule.local_date(now)
        _close_missed_days(schedule, today, summary)

        try:
            closing_at = schedule.closing_at(now)
        except ScheduleError as exc:
            logger.warning("Skipping closing checkout for store %s: %s", store_id, exc)
            summary["skipped_stores"].append(store_id)
            continue

        if not (closing_at <= now <= closing_at + tolerance):
            continue

        sessions = (
            db.session.query(AttendanceRecord.id, AttendanceRecord.check_in_time)
            .filter_by(store_id=store_id, status=AttendanceStatus.CHECKED_IN, work_date=today)
            .all()
        )
        for record_id, check_in_time in sessions:
            try:
                summary["sessions_checked_out"] += _auto_checkout(
                    record_id,
                    check_in_time=check_in_time,
                    checkout_at=closing_at,
                )
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                summary["errors"] += 1
                logger.exception("Closing checkout failed for attendance record %s", record_id)

        try:
            summary["queue_entries_cleared"] += clear_store_queue(store_id)
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            summary["errors"] += 1
            logger.exception("Ready queue clear failed for store %s", store_id)
            continue

        summary["stores_closed"].append(store_id)
        logger.info(
            "Closing checkout for store %s at %s: %s sessions",
            store_id, closing_at.isoformat(), len(sessions),
        )

    return summary


# =============================================================================
# DAILY-PAY INACTIVITY CHECKOUT
# =============================================================================


def last_completed_service_at(employee_id: int, store_id: int, *, since: datetime) -> datetime | None:
    """Latest completed_at among the employee's service lines at the store since `since`."""
    return (
        db.session.query(func.max(TicketItem.completed_at))
        .join(SaleTicket, SaleTicket.id == TicketItem.ticket_id)
        .filter(
            TicketItem.employee_id == employee_id,
            SaleTicket.store_id == store_id,
            TicketItem.completed_at.isnot(None),
            TicketItem.completed_at >= since,
        )
        .scalar()
    )


def run_inactivity_checkout(*, now: datetime | None = None) -> dict:
    now = now or utcnow()
    threshold = timedelta(hours=get_setting("DAILY_INACTIVITY_HOURS"))

    summary = {"sessions_checked_out": 0, "skipped_stores": [], "errors": 0}

    for store in _active_stores():
        store_id = store.id
        try:
            schedule = StoreSchedule.for_store(store)
        except ScheduleError as exc:
            logger.warning("Skipping inactivity checkout for store %s: %s", store_id, exc)
            summary["skipped_stores"].append(store_id)
            continue

        today = schedule.local_date(now)
        day_start = local_to_utc(today, datetime.min.time(), schedule.tz_name)

        sessions = (
            db.session.query(AttendanceRecord.id, AttendanceRecord.employee_id, AttendanceRecord.check_in_time)
            .filter_by(
                store_id=store_id,
                status=AttendanceStatus.CHECKED_IN,
                pay_type=PayType.DAILY,
                work_date=today,
            )
            .all()
        )
        for record_id, employee_id, check_in_time in sessions:
            try:
                last_done = last_completed_service_at(
                    employee_id,
                    store_id,
                    since=max(day_start, check_in_time),
                )
                if last_done is None or now - last_done <= threshold:
                    continue
                updated = _auto_checkout(record_id, check_in_time=check_in_time, checkout_at=last_done)
                db.session.commit()
            except SQLAlchemyError:
                db.session.rollback()
                summary["errors"] += 1
                logger.exception("Inactivity checkout failed for attendance record %s", record_id)
                continue

            if updated:
                summary["sessions_checked_out"] += 1
                logger.info(
                    "Employee %s auto-checked-out at store %s (last service %s)",
                    employee_id, store_id, last_done.isoformat(),
                )

    return summary
