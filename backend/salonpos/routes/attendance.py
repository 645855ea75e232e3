# Overview: Flask API routes for attendance check-in/check-out; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify

from ..decorators import require_employee, require_store_id
from ..services import attendance_service
from ..services.attendance_service import AttendanceError


attendance_bp = Blueprint("attendance", __name__, url_prefix="/api/attendance")


@attendance_bp.post("/check-in")
@require_employee
@require_store_id
def check_in_route(employee, store_id):
    data = request.get_json(silent=True) or {}
    try:
        record = attendance_service.check_in(
            employee_id=employee.id,
            store_id=store_id,
            notes=data.get("notes"),
        )
        return jsonify({"record": record.to_dict()}), 201
    except AttendanceError as e:
        return jsonify({"error": str(e)}), 400


@attendance_bp.post("/check-out")
@require_employee
@require_store_id
def check_out_route(employee, store_id):
    try:
        record = attendance_service.check_out(employee_id=employee.id, store_id=store_id)
        return jsonify({"record": record.to_dict()})
    except AttendanceError as e:
        return jsonify({"error": str(e)}), 400


@attendance_bp.get("/status")
@require_employee
@require_store_id
def attendance_status_route(employee, store_id):
    try:
        return jsonify(attendance_service.get_current_status(employee.id, store_id))
    except AttendanceError as e:
        return jsonify({"error": str(e)}), 400
