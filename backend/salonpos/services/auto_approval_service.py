# Overview: Periodic sweep that auto-approves tickets whose approval window lapsed.

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import ApprovalStatus, SaleTicket
from .approval_service import expire_ticket
from salonpos.time_utils import utcnow

logger = logging.getLogger(__name__)


def find_expired_ticket_ids(now: datetime) -> list[int]:
    return [
        ticket_id
        for (ticket_id,) in db.session.query(SaleTicket.id)
        .filter(
            SaleTicket.approval_status == ApprovalStatus.PENDING,
            SaleTicket.approval_deadline <= now,
        )
        .order_by(SaleTicket.approval_deadline, SaleTicket.id)
        .all()
    ]


def auto_approve_expired_tickets(*, now: datetime | None = None) -> dict:
    """
    Drive every overdue pending ticket through expire.

    Rows already moved on by a concurrent approve/reject/sweep count as
    skipped. One failing ticket never stops the rest.
    """
    now = now or utcnow()
    summary = {"auto_approved": [], "skipped": 0, "errors": 0}

    for ticket_id in find_expired_ticket_ids(now):
        try:
            result = expire_ticket(ticket_id, now=now)
        except SQLAlchemyError:
            db.session.rollback()
            summary["errors"] += 1
            logger.exception("Auto-approval failed for ticket %s", ticket_id)
            continue

        if result.ok and not result.noop:
            summary["auto_approved"].append(ticket_id)
        else:
            summary["skipped"] += 1

    if summary["auto_approved"]:
        logger.info("Auto-approved %s tickets", len(summary["auto_approved"]))
    return summary
