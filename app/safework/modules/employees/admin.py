from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.safework.auth import current_organization, current_user
from app.safework.db import db_session
from app.safework.errors import ApiError, json_body, raise_for_errors
from app.safework.modules.employees.service import (
    create_employee,
    deactivate_employee,
    get_employee,
    list_employees,
    send_invite,
    serialize_employee,
    update_employee,
    validate_employee_payload,
)
from app.safework.rbac import require_permission

bp = Blueprint("employees", __name__)


@bp.get("/employees")
@require_permission("employees.view")
def employees_list():
    s = db_session()
    org = current_organization(s)
    active = (request.args.get("active") or "").strip().lower() or None
    role = (request.args.get("role") or "").strip() or None
    search = (request.args.get("search") or "").strip() or None
    employees = list_employees(s, org, active=active, role=role, search=search)
    return jsonify([serialize_employee(e) for e in employees])


@bp.post("/employees")
@require_permission("employees.edit")
def employees_create():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    payload = json_body()
    raise_for_errors(validate_employee_payload(payload))

    employee = create_employee(s, org, payload, u)
    s.commit()

    if payload.get("send_invite", True):
        if send_invite(s, org, employee, u):
            s.commit()
        else:
            # Employee stays created with invite_status=pending; admin can resend.
            s.rollback()
            s.refresh(employee)
    return jsonify(serialize_employee(employee)), 201


@bp.get("/employees/<int:employee_id>")
@require_permission("employees.view")
def employee_detail(employee_id: int):
    s = db_session()
    org = current_organization(s)
    return jsonify(serialize_employee(get_employee(s, org, employee_id)))


@bp.put("/employees/<int:employee_id>")
@require_permission("employees.edit")
def employee_update(employee_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee = get_employee(s, org, employee_id)
    payload = json_body()
    raise_for_errors(validate_employee_payload(payload, partial=True))
    update_employee(s, org, employee, payload, u)
    s.commit()
    return jsonify(serialize_employee(employee))


@bp.delete("/employees/<int:employee_id>")
@require_permission("employees.edit")
def employee_deactivate(employee_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee = get_employee(s, org, employee_id)
    deactivate_employee(s, employee, u)
    s.commit()
    return jsonify(serialize_employee(employee))


@bp.post("/employees/<int:employee_id>/resend-invite")
@require_permission("employees.edit")
def employee_resend_invite(employee_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee = get_employee(s, org, employee_id)
    if not employee.is_active:
        raise ApiError("Cannot invite an inactive employee")
    if employee.invite_status == "accepted":
        raise ApiError("Employee has already accepted the invite")
    if not send_invite(s, org, employee, u):
        s.rollback()
        raise ApiError("Failed to send invite", 502)
    s.commit()
    return jsonify({"success": True, "employee": serialize_employee(employee)})
