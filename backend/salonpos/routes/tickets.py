# Overview: Flask API routes for ticket close/approval operations; parses input and returns JSON responses.

"""
Ticket Routes

The acting employee comes from X-Employee-Id. Eligibility is decided by the
approval workflow, not here; precondition failures come back as
{"error", "code"} with a status derived from the reason code.
"""

from flask import Blueprint, request, jsonify

from ..decorators import require_employee, require_store_id
from ..extensions import db
from ..models import SaleTicket
from ..services import approval_service, ticket_service
from ..services.activity_service import list_activity
from ..services.approval_service import ReasonCode, TransitionResult
from ..services.ticket_service import TicketError


tickets_bp = Blueprint("tickets", __name__, url_prefix="/api/tickets")


_STATUS_BY_CODE = {
    ReasonCode.TICKET_NOT_FOUND: 404,
    ReasonCode.EMPLOYEE_NOT_FOUND: 404,
    ReasonCode.NOT_OPEN: 409,
    ReasonCode.NOT_PENDING: 409,
    ReasonCode.NOT_DUE: 409,
    ReasonCode.SELF_APPROVAL: 403,
    ReasonCode.CONFLICT_OF_INTEREST: 403,
    ReasonCode.INSUFFICIENT_ROLE: 403,
    ReasonCode.NOT_ASSIGNED: 403,
    ReasonCode.REASON_REQUIRED: 400,
}


def _transition_response(result: TransitionResult):
    if result.ok:
        return jsonify(result.to_dict())
    body = result.to_dict()
    body["error"] = result.reason
    return jsonify(body), _STATUS_BY_CODE.get(result.code, 400)


@tickets_bp.post("")
@require_employee
@require_store_id
def open_ticket_route(employee, store_id):
    data = request.get_json(silent=True) or {}
    try:
        ticket = ticket_service.open_ticket(
            store_id=store_id,
            opened_by_id=employee.id,
            ticket_no=data.get("ticket_no"),
        )
        return jsonify({"ticket": ticket.to_dict()}), 201
    except TicketError as e:
        return jsonify({"error": str(e)}), 400


@tickets_bp.post("/<int:ticket_id>/items")
@require_employee
def add_item_route(ticket_id: int, employee):
    data = request.get_json(silent=True) or {}
    performer_id = data.get("employee_id")
    if not performer_id:
        return jsonify({"error": "employee_id is required"}), 400

    try:
        item = ticket_service.add_ticket_item(
            ticket_id=ticket_id,
            employee_id=int(performer_id),
            service_id=data.get("service_id"),
            qty=int(data.get("qty", 1)),
            price_cents=data.get("price_cents"),
            edited_by_id=employee.id,
        )
        return jsonify({"item": item.to_dict()}), 201
    except (TypeError, ValueError) as e:
        # TicketError is a ValueError
        return jsonify({"error": str(e)}), 400


@tickets_bp.post("/<int:ticket_id>/close")
@require_employee
def close_ticket_route(ticket_id: int, employee):
    result = approval_service.close_ticket(ticket_id, employee.id)
    return _transition_response(result)


@tickets_bp.post("/<int:ticket_id>/approve")
@require_employee
def approve_ticket_route(ticket_id: int, employee):
    result = approval_service.approve_ticket(ticket_id, employee.id)
    return _transition_response(result)


@tickets_bp.post("/<int:ticket_id>/reject")
@require_employee
def reject_ticket_route(ticket_id: int, employee):
    data = request.get_json(silent=True) or {}
    result = approval_service.reject_ticket(ticket_id, employee.id, data.get("reason"))
    return _transition_response(result)


@tickets_bp.get("/pending-approvals")
@require_employee
@require_store_id
def pending_approvals_route(employee, store_id):
    """
    Tickets the acting employee could approve right now.

    Query params:
    - store_id (required)
    - level: technician | supervisor | manager
    """
    tickets = approval_service.get_pending_approvals(
        store_id=store_id,
        employee_id=employee.id,
        level=request.args.get("level") or None,
    )
    return jsonify({"tickets": tickets, "count": len(tickets)})


@tickets_bp.get("/<int:ticket_id>/activity")
@require_employee
def ticket_activity_route(ticket_id: int, employee):
    if not db.session.get(SaleTicket, ticket_id):
        return jsonify({"error": "Ticket not found"}), 404
    return jsonify({"activity": [entry.to_dict() for entry in list_activity(ticket_id)]})


@tickets_bp.get("/admin-review")
@require_employee
@require_store_id
def admin_review_route(employee, store_id):
    if not employee.role_set.is_admin:
        return jsonify({"error": "Admin access required"}), 403
    tickets = approval_service.get_tickets_for_admin_review(store_id=store_id)
    return jsonify({"tickets": [t.to_dict() for t in tickets]})


@tickets_bp.post("/<int:ticket_id>/review")
@require_employee
def review_ticket_route(ticket_id: int, employee):
    result = approval_service.mark_reviewed(ticket_id, employee.id)
    return _transition_response(result)
