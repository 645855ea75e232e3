# Overview: Pytest coverage for attendance check-in/out and the scheduler sweeps.

from datetime import datetime, timedelta

import pytest

from salonpos.extensions import db
from salonpos.models import AttendanceRecord, AttendanceStatus, Store, TechnicianQueueEntry
from salonpos.roles import Role
from salonpos.services import attendance_service, queue_service
from salonpos.services.attendance_scheduler import run_closing_checkout, run_inactivity_checkout
from salonpos.services.attendance_service import AttendanceError

from conftest import WED_0900_EDT


# Wednesday 2025-10-22 closes 17:30 EDT = 21:30 UTC
WED_CLOSE_EDT = datetime(2025, 10, 22, 21, 30)
# Wednesday 2025-11-05 opens 09:00 EST = 14:00 UTC, closes 17:30 EST = 22:30 UTC
WED_0900_EST = datetime(2025, 11, 5, 14, 0)
WED_CLOSE_EST = datetime(2025, 11, 5, 22, 30)
TUE_0900_EDT = datetime(2025, 10, 21, 13, 0)
TUE_CLOSE_EDT = datetime(2025, 10, 21, 21, 30)


def _record(record_id):
    return db.session.get(AttendanceRecord, record_id)


def _queue_size(store_id):
    return db.session.query(TechnicianQueueEntry).filter_by(store_id=store_id).count()


class TestCheckInOut:
    def test_check_in_twice_returns_open_session(self, db_session, store, technician):
        first = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)
        second = attendance_service.check_in(
            employee_id=technician.id, store_id=store.id, now=WED_0900_EDT + timedelta(hours=1),
        )

        assert first.id == second.id
        assert db.session.query(AttendanceRecord).count() == 1

    def test_check_in_before_window_refused(self, db_session, store, technician):
        with pytest.raises(AttendanceError):
            attendance_service.check_in(
                employee_id=technician.id, store_id=store.id, now=WED_0900_EDT - timedelta(minutes=16),
            )

    def test_check_in_records_local_work_date_and_pay_type(self, db_session, store, make_employee):
        daily = make_employee("Dora", [Role.TECHNICIAN], pay_type="daily")
        record = attendance_service.check_in(employee_id=daily.id, store_id=store.id, now=WED_0900_EDT)

        assert record.work_date.isoformat() == "2025-10-22"
        assert record.pay_type == "daily"
        assert record.status == AttendanceStatus.CHECKED_IN

    def test_check_in_requires_store_assignment(self, db_session, store, technician):
        other = Store(name="Other", code="T9", timezone="America/New_York")
        db_session.add(other)
        db_session.commit()

        with pytest.raises(AttendanceError):
            attendance_service.check_in(employee_id=technician.id, store_id=other.id, now=WED_0900_EDT)

    def test_check_out_computes_hours(self, db_session, store, technician):
        record = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)

        closed = attendance_service.check_out(
            employee_id=technician.id, store_id=store.id, now=WED_0900_EDT + timedelta(hours=4, minutes=15),
        )

        assert closed.id == record.id
        assert closed.status == AttendanceStatus.CHECKED_OUT
        assert closed.total_hours == 4.25

    def test_check_out_without_session(self, db_session, store, technician):
        with pytest.raises(AttendanceError):
            attendance_service.check_out(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)

    def test_multiple_sessions_per_day(self, db_session, store, technician):
        attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)
        attendance_service.check_out(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT + timedelta(hours=2))
        attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT + timedelta(hours=3))

        assert db.session.query(AttendanceRecord).filter_by(employee_id=technician.id).count() == 2


class TestClosingCheckout:
    @pytest.mark.parametrize("check_in_at, closing_at", [
        (WED_0900_EDT, WED_CLOSE_EDT),
        (WED_0900_EST, WED_CLOSE_EST),
    ])
    def test_auto_checkout_at_closing(self, db_session, store, technician, check_in_at, closing_at):
        record = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=check_in_at)
        queue_service.join_ready_queue(technician.id, store.id, now=check_in_at + timedelta(minutes=5))

        summary = run_closing_checkout(now=closing_at + timedelta(minutes=5))

        r = _record(record.id)
        assert r.status == AttendanceStatus.AUTO_CHECKED_OUT
        assert r.check_out_time == closing_at
        assert r.total_hours == 8.5
        assert _queue_size(store.id) == 0
        assert summary["sessions_checked_out"] == 1
        assert summary["queue_entries_cleared"] == 1
        assert summary["stores_closed"] == [store.id]

    def test_nothing_happens_before_closing(self, db_session, store, technician):
        record = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)

        summary = run_closing_checkout(now=WED_CLOSE_EDT - timedelta(minutes=1))

        assert _record(record.id).status == AttendanceStatus.CHECKED_IN
        assert summary["stores_closed"] == []

    def test_nothing_happens_after_tolerance(self, db_session, store, technician):
        record = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)

        run_closing_checkout(now=WED_CLOSE_EDT + timedelta(minutes=16))

        assert _record(record.id).status == AttendanceStatus.CHECKED_IN

    def test_idempotent(self, db_session, store, technician):
        record = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)
        run_closing_checkout(now=WED_CLOSE_EDT)

        again = run_closing_checkout(now=WED_CLOSE_EDT + timedelta(minutes=10))

        assert again["sessions_checked_out"] == 0
        assert _record(record.id).check_out_time == WED_CLOSE_EDT

    def test_manual_checkout_is_not_overwritten(self, db_session, store, technician):
        record = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)
        attendance_service.check_out(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT + timedelta(hours=5))

        run_closing_checkout(now=WED_CLOSE_EDT)

        r = _record(record.id)
        assert r.status == AttendanceStatus.CHECKED_OUT
        assert r.total_hours == 5.0

    def test_store_without_closing_time_is_skipped(self, db_session, store, technician):
        store.closing_hours = {"monday": "17:30"}
        db_session.commit()
        record = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)

        summary = run_closing_checkout(now=WED_CLOSE_EDT)

        assert summary["skipped_stores"] == [store.id]
        assert _record(record.id).status == AttendanceStatus.CHECKED_IN

    def test_failure_on_one_session_does_not_stop_others(self, db_session, monkeypatch, store, technician, make_employee):
        from sqlalchemy.exc import OperationalError
        from salonpos.services import attendance_scheduler

        other = make_employee("Oli", [Role.TECHNICIAN])
        broken = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)
        healthy = attendance_service.check_in(employee_id=other.id, store_id=store.id, now=WED_0900_EDT)
        broken_id, healthy_id = broken.id, healthy.id

        real_checkout = attendance_scheduler._auto_checkout

        def flaky_checkout(record_id, **kwargs):
            if record_id == broken_id:
                raise OperationalError("UPDATE attendance_records", {}, Exception("database is locked"))
            return real_checkout(record_id, **kwargs)

        monkeypatch.setattr(attendance_scheduler, "_auto_checkout", flaky_checkout)

        summary = run_closing_checkout(now=WED_CLOSE_EDT)

        assert summary["errors"] == 1
        assert summary["sessions_checked_out"] == 1
        assert _record(broken_id).status == AttendanceStatus.CHECKED_IN
        assert _record(healthy_id).status == AttendanceStatus.AUTO_CHECKED_OUT

    def test_session_left_open_overnight_closes_at_its_own_closing(self, db_session, store, technician):
        tuesday = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=TUE_0900_EDT)
        queue_service.join_ready_queue(technician.id, store.id, now=TUE_0900_EDT + timedelta(minutes=5))

        wednesday = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)
        assert wednesday.id != tuesday.id
        assert wednesday.work_date.isoformat() == "2025-10-22"

        summary = run_closing_checkout(now=WED_CLOSE_EDT + timedelta(minutes=5))

        old, new = _record(tuesday.id), _record(wednesday.id)
        assert old.status == AttendanceStatus.AUTO_CHECKED_OUT
        assert old.check_out_time == TUE_CLOSE_EDT
        assert old.total_hours == 8.5
        assert new.status == AttendanceStatus.AUTO_CHECKED_OUT
        assert new.check_out_time == WED_CLOSE_EDT
        assert summary["stale_sessions_checked_out"] == 1
        assert summary["sessions_checked_out"] == 1
        assert summary["queue_entries_cleared"] == 1
        assert _queue_size(store.id) == 0

    def test_earlier_day_closed_outside_closing_window(self, db_session, store, technician):
        tuesday = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=TUE_0900_EDT)
        wednesday = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)

        summary = run_closing_checkout(now=WED_0900_EDT + timedelta(hours=1))

        assert _record(tuesday.id).status == AttendanceStatus.AUTO_CHECKED_OUT
        assert _record(tuesday.id).check_out_time == TUE_CLOSE_EDT
        assert _record(wednesday.id).status == AttendanceStatus.CHECKED_IN
        assert summary["stale_sessions_checked_out"] == 1
        assert summary["stores_closed"] == []

    def test_check_out_leaves_earlier_day_to_the_sweep(self, db_session, store, technician):
        tuesday = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=TUE_0900_EDT)

        with pytest.raises(AttendanceError):
            attendance_service.check_out(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)

        assert _record(tuesday.id).status == AttendanceStatus.CHECKED_IN


class TestInactivityCheckout:
    def _daily_with_service_done_at(self, store, make_employee, make_ticket, done_at):
        daily = make_employee("Dora", [Role.TECHNICIAN], pay_type="daily")
        record = attendance_service.check_in(employee_id=daily.id, store_id=store.id, now=WED_0900_EDT)
        make_ticket([daily], opened_at=done_at - timedelta(minutes=45))
        queue_service.join_ready_queue(daily.id, store.id, now=done_at)
        return daily, record

    def test_checkout_at_last_completion(self, db_session, store, make_employee, make_ticket):
        # 14:00 and 16:05 EDT
        last_done = datetime(2025, 10, 22, 18, 0)
        _, record = self._daily_with_service_done_at(store, make_employee, make_ticket, last_done)

        summary = run_inactivity_checkout(now=datetime(2025, 10, 22, 20, 5))

        r = _record(record.id)
        assert summary["sessions_checked_out"] == 1
        assert r.status == AttendanceStatus.AUTO_CHECKED_OUT
        assert r.check_out_time == last_done
        assert r.total_hours == 5.0

    def test_not_yet_inactive(self, db_session, store, make_employee, make_ticket):
        last_done = datetime(2025, 10, 22, 18, 0)
        _, record = self._daily_with_service_done_at(store, make_employee, make_ticket, last_done)

        run_inactivity_checkout(now=last_done + timedelta(hours=2))

        assert _record(record.id).status == AttendanceStatus.CHECKED_IN

    def test_hourly_employees_are_ignored(self, db_session, store, technician, make_ticket):
        record = attendance_service.check_in(employee_id=technician.id, store_id=store.id, now=WED_0900_EDT)
        make_ticket([technician], opened_at=WED_0900_EDT + timedelta(minutes=5))
        queue_service.join_ready_queue(technician.id, store.id, now=WED_0900_EDT + timedelta(hours=1))

        run_inactivity_checkout(now=WED_0900_EDT + timedelta(hours=6))

        assert _record(record.id).status == AttendanceStatus.CHECKED_IN

    def test_no_completed_service_means_no_checkout(self, db_session, store, make_employee):
        daily = make_employee("Dora", [Role.TECHNICIAN], pay_type="daily")
        record = attendance_service.check_in(employee_id=daily.id, store_id=store.id, now=WED_0900_EDT)

        run_inactivity_checkout(now=WED_0900_EDT + timedelta(hours=6))

        assert _record(record.id).status == AttendanceStatus.CHECKED_IN

    def test_idempotent(self, db_session, store, make_employee, make_ticket):
        last_done = datetime(2025, 10, 22, 18, 0)
        _, record = self._daily_with_service_done_at(store, make_employee, make_ticket, last_done)
        run_inactivity_checkout(now=datetime(2025, 10, 22, 20, 5))

        again = run_inactivity_checkout(now=datetime(2025, 10, 22, 20, 20))

        assert again["sessions_checked_out"] == 0
        assert _record(record.id).check_out_time == last_done
