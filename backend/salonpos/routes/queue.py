# Overview: Flask API routes for the technician ready queue; parses input and returns JSON responses.

from flask import Blueprint, jsonify

from ..decorators import require_employee, require_store_id
from ..extensions import db
from ..models import Store
from ..services import queue_service
from ..services.queue_service import QueueErrorCode


queue_bp = Blueprint("queue", __name__, url_prefix="/api/queue")


_STATUS_BY_ERROR = {
    QueueErrorCode.EMPLOYEE_NOT_FOUND: 404,
    QueueErrorCode.STORE_NOT_FOUND: 404,
    QueueErrorCode.CHECK_IN_REQUIRED: 409,
    QueueErrorCode.OUTSIDE_CHECK_IN_WINDOW: 409,
}


@queue_bp.post("/join")
@require_employee
@require_store_id
def join_queue_route(employee, store_id):
    """"I'm ready": completes the employee's open services and joins the queue."""
    result = queue_service.join_ready_queue(employee.id, store_id)
    if not result.ok:
        return jsonify({"error": result.message, "code": result.error}), _STATUS_BY_ERROR.get(result.error, 400)
    return jsonify(result.to_dict()), 201


@queue_bp.post("/leave")
@require_employee
@require_store_id
def leave_queue_route(employee, store_id):
    queue_service.leave_ready_queue(employee.id, store_id)
    return jsonify({"ok": True})


@queue_bp.get("/status")
@require_employee
@require_store_id
def queue_status_route(employee, store_id):
    return jsonify({
        "employee_id": employee.id,
        "store_id": store_id,
        "in_queue": queue_service.check_queue_status(employee.id, store_id),
    })


@queue_bp.get("/<int:store_id>")
def ordered_queue_route(store_id: int):
    if not db.session.get(Store, store_id):
        return jsonify({"error": "Store not found"}), 404
    technicians = queue_service.get_ordered_technicians(store_id)
    return jsonify({"store_id": store_id, "technicians": technicians})
