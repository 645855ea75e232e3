# Overview: Request decorators for API routes.

from functools import wraps
from flask import request, jsonify

from .extensions import db
from .models import Employee


def require_employee(f):
    """
    Resolve the acting employee from the X-Employee-Id header.

    Identity is established by the collaborating front end; this layer only
    looks the employee up. The employee is passed to the view as the
    `employee` keyword argument, never stored as request-global state.

    Returns 401 if the header is missing or malformed, 403 if the employee is
    unknown or inactive.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        raw = request.headers.get("X-Employee-Id", "").strip()
        if not raw:
            return jsonify({"error": "X-Employee-Id header required"}), 401
        try:
            employee_id = int(raw)
        except ValueError:
            return jsonify({"error": "X-Employee-Id must be an integer"}), 401

        employee = db.session.get(Employee, employee_id)
        if not employee or not employee.is_active:
            return jsonify({"error": "Employee not found or inactive"}), 403

        kwargs["employee"] = employee
        return f(*args, **kwargs)

    return decorated_function


def _int_arg(data: dict, key: str):
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def require_store_id(f):
    """Parse store_id from the JSON body or query string into the `store_id` keyword."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        data = request.get_json(silent=True) or {}
        store_id = _int_arg(data, "store_id")
        if store_id is None:
            store_id = _int_arg(request.args, "store_id")
        if store_id is None:
            return jsonify({"error": "store_id is required"}), 400
        kwargs["store_id"] = store_id
        return f(*args, **kwargs)

    return decorated_function
