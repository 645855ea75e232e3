# Overview: Pytest coverage for the auto-approval sweep.

from datetime import timedelta

from salonpos.extensions import db
from salonpos.models import ApprovalStatus, SaleTicket
from salonpos.services import approval_service
from salonpos.services.auto_approval_service import auto_approve_expired_tickets, find_expired_ticket_ids

from conftest import WED_0900_EDT


CLOSE_AT = WED_0900_EDT + timedelta(hours=1)
AFTER_DEADLINE = CLOSE_AT + timedelta(hours=48, minutes=5)


def _status(ticket_id):
    return db.session.get(SaleTicket, ticket_id).approval_status


class TestAutoApprovalSweep:
    def test_only_overdue_pending_tickets(self, db_session, make_ticket, technician, receptionist):
        overdue = make_ticket([technician])
        approval_service.close_ticket(overdue.id, receptionist.id, now=CLOSE_AT)
        fresh = make_ticket([technician])
        approval_service.close_ticket(fresh.id, receptionist.id, now=CLOSE_AT + timedelta(hours=24))
        still_open = make_ticket([technician])

        summary = auto_approve_expired_tickets(now=AFTER_DEADLINE)

        assert summary["auto_approved"] == [overdue.id]
        assert summary["errors"] == 0
        assert _status(overdue.id) == ApprovalStatus.AUTO_APPROVED
        assert _status(fresh.id) == ApprovalStatus.PENDING
        assert _status(still_open.id) == ApprovalStatus.NONE

    def test_rerun_finds_nothing(self, db_session, make_ticket, technician, receptionist):
        ticket = make_ticket([technician])
        approval_service.close_ticket(ticket.id, receptionist.id, now=CLOSE_AT)

        auto_approve_expired_tickets(now=AFTER_DEADLINE)
        second = auto_approve_expired_tickets(now=AFTER_DEADLINE + timedelta(minutes=15))

        assert second == {"auto_approved": [], "skipped": 0, "errors": 0}
        assert _status(ticket.id) == ApprovalStatus.AUTO_APPROVED

    def test_manual_decisions_are_not_overridden(self, db_session, make_ticket, technician, receptionist):
        approved = make_ticket([technician])
        approval_service.close_ticket(approved.id, receptionist.id, now=CLOSE_AT)
        approval_service.approve_ticket(approved.id, technician.id, now=CLOSE_AT)
        rejected = make_ticket([technician])
        approval_service.close_ticket(rejected.id, receptionist.id, now=CLOSE_AT)
        approval_service.reject_ticket(rejected.id, technician.id, "Not mine", now=CLOSE_AT)

        assert find_expired_ticket_ids(AFTER_DEADLINE) == []
        auto_approve_expired_tickets(now=AFTER_DEADLINE)

        assert _status(approved.id) == ApprovalStatus.APPROVED
        assert _status(rejected.id) == ApprovalStatus.REJECTED

    def test_deadline_boundary_is_inclusive(self, db_session, make_ticket, technician, receptionist):
        ticket = make_ticket([technician])
        approval_service.close_ticket(ticket.id, receptionist.id, now=CLOSE_AT)

        summary = auto_approve_expired_tickets(now=CLOSE_AT + timedelta(hours=48))

        assert summary["auto_approved"] == [ticket.id]

    def test_failure_on_one_ticket_does_not_stop_sweep(self, db_session, monkeypatch, make_ticket, technician, receptionist):
        from sqlalchemy.exc import OperationalError
        from salonpos.services import auto_approval_service

        broken = make_ticket([technician])
        approval_service.close_ticket(broken.id, receptionist.id, now=CLOSE_AT)
        healthy = make_ticket([technician])
        approval_service.close_ticket(healthy.id, receptionist.id, now=CLOSE_AT + timedelta(minutes=1))

        broken_id = broken.id
        real_expire = auto_approval_service.expire_ticket

        def flaky_expire(ticket_id, *, now=None):
            if ticket_id == broken_id:
                raise OperationalError("UPDATE sale_tickets", {}, Exception("database is locked"))
            return real_expire(ticket_id, now=now)

        monkeypatch.setattr(auto_approval_service, "expire_ticket", flaky_expire)

        summary = auto_approve_expired_tickets(now=AFTER_DEADLINE)

        assert summary["errors"] == 1
        assert summary["auto_approved"] == [healthy.id]
        assert _status(broken_id) == ApprovalStatus.PENDING
