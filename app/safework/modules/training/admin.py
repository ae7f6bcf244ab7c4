from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.safework.auth import current_organization, current_user
from app.safework.db import db_session
from app.safework.errors import ApiError, json_body, raise_for_errors
from app.safework.modules.employees.service import employee_for_user, get_employee
from app.safework.modules.training.service import (
    assign_training,
    complete_training,
    create_record,
    get_module,
    get_record,
    list_modules,
    list_progress,
    list_records,
    portal_dashboard,
    record_video_progress,
    serialize_module,
    serialize_progress,
    serialize_record,
    submit_quiz,
    training_report,
    update_record,
    validate_record_payload,
)
from app.safework.rbac import require_permission, user_has_permission
from app.safework.utils import parse_datetime

bp = Blueprint("training", __name__)


def _int_arg(name: str) -> int | None:
    raw = (request.args.get(name) or "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ApiError(f"{name} must be an integer")


def _date_arg(name: str, *, end_of_day: bool = False):
    raw = (request.args.get(name) or "").strip()
    try:
        value = parse_datetime(raw)
    except ValueError:
        raise ApiError(f"{name} must be YYYY-MM-DD")
    if value and end_of_day and len(raw) == 10:
        value = value.replace(hour=23, minute=59, second=59)
    return value


# Training records -----------------------------------------------------------


@bp.get("/training")
@require_permission("training.view")
def records_list():
    s = db_session()
    org = current_organization(s)
    records = list_records(
        s,
        org,
        employee_id=_int_arg("employee_id"),
        training_type=(request.args.get("training_type") or "").strip() or None,
        start=_date_arg("start_date"),
        end=_date_arg("end_date", end_of_day=True),
    )
    return jsonify([serialize_record(r) for r in records])


@bp.post("/training")
@require_permission("training.manage")
def records_create():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    payload = json_body()
    raise_for_errors(validate_record_payload(payload))
    record = create_record(s, org, payload, u)
    s.commit()
    return jsonify(serialize_record(record)), 201


@bp.get("/training/<int:record_id>")
@require_permission("training.view")
def record_detail(record_id: int):
    s = db_session()
    org = current_organization(s)
    return jsonify(serialize_record(get_record(s, org, record_id)))


@bp.put("/training/<int:record_id>")
@require_permission("training.manage")
def record_update(record_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    record = get_record(s, org, record_id)
    payload = json_body()
    raise_for_errors(validate_record_payload(payload, partial=True))
    update_record(s, org, record, payload, u)
    s.commit()
    return jsonify(serialize_record(record))


# Catalogue ------------------------------------------------------------------


@bp.get("/training/modules")
@require_permission("training.take")
def modules_list():
    s = db_session()
    return jsonify([serialize_module(m) for m in list_modules(s)])


@bp.get("/training/modules/<int:module_id>")
@require_permission("training.take")
def module_detail(module_id: int):
    s = db_session()
    return jsonify(serialize_module(get_module(s, module_id), include_questions=True))


@bp.post("/training/assign")
@require_permission("training.manage")
def assign():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    payload = json_body()
    result = assign_training(s, org, payload.get("employee_ids"), payload.get("due_date"), u)
    s.commit()
    current_app.logger.info("Training assigned (org=%s assigned=%s)", org.id, result["assigned"])
    return jsonify(result), 201


@bp.get("/training/reports")
@require_permission("training.view")
def reports():
    s = db_session()
    org = current_organization(s)
    return jsonify(training_report(s, org))


# Employee progress (portal) ---------------------------------------------------


@bp.get("/training/progress")
@require_permission("training.take")
def progress_list():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee_id = _int_arg("employee_id")
    if employee_id is not None:
        if not user_has_permission(u, "training.view"):
            raise ApiError("Forbidden", 403)
        employee = get_employee(s, org, employee_id)
    else:
        employee = employee_for_user(s, u)
    return jsonify([serialize_progress(p) for p in list_progress(s, org, employee)])


@bp.post("/training/progress/video")
@require_permission("training.take")
def progress_video():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee = employee_for_user(s, u)
    payload = json_body()
    if not payload.get("module_id"):
        raise ApiError("module_id is required")
    module = get_module(s, payload["module_id"])
    progress = record_video_progress(s, org, employee, module, payload)
    s.commit()
    return jsonify(serialize_progress(progress, module))


@bp.post("/training/progress/quiz")
@require_permission("training.take")
def progress_quiz():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee = employee_for_user(s, u)
    payload = json_body()
    if not payload.get("module_id") or not isinstance(payload.get("answers"), list):
        raise ApiError("module_id and answers array are required")
    module = get_module(s, payload["module_id"])
    result = submit_quiz(s, org, employee, module, payload["answers"], u)
    s.commit()
    return jsonify(result)


@bp.post("/training/complete")
@require_permission("training.take")
def complete():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee = employee_for_user(s, u)
    payload = json_body()
    record = complete_training(s, org, employee, bool(payload.get("acknowledgment")), u)
    s.commit()
    return (
        jsonify(
            {
                "training_record": serialize_record(record),
                "training_type": record.training_type,
                "completed_at": record.completed_at.isoformat(),
                "next_due_date": employee.next_training_due_date.isoformat(),
            }
        ),
        201,
    )


@bp.get("/portal/dashboard")
@require_permission("portal.view")
def portal():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee = employee_for_user(s, u)
    return jsonify(portal_dashboard(s, org, employee))
