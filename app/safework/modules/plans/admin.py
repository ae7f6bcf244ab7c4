from __future__ import annotations

import io

from flask import Blueprint, current_app, jsonify, send_file

from app.safework.audit import record_event
from app.safework.auth import current_organization, current_user
from app.safework.db import db_session
from app.safework.errors import json_body, raise_for_errors
from app.safework.modules.documents.pdf.wvpp import build_wvpp_pdf
from app.safework.modules.employees.service import employee_for_user
from app.safework.modules.plans.service import (
    acknowledge_plan,
    create_plan,
    get_plan,
    list_plans,
    publish_plan,
    serialize_plan,
    update_plan,
    validate_plan_payload,
)
from app.safework.rbac import require_permission

bp = Blueprint("plans", __name__)


@bp.get("/plans")
@require_permission("plans.view")
def plans_list():
    s = db_session()
    org = current_organization(s)
    return jsonify([serialize_plan(p) for p in list_plans(s, org)])


@bp.post("/plans")
@require_permission("plans.edit")
def plans_create():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    payload = json_body()
    raise_for_errors(validate_plan_payload(payload))
    plan = create_plan(s, org, payload, u)
    s.commit()
    return jsonify(serialize_plan(plan)), 201


@bp.get("/plans/<int:plan_id>")
@require_permission("plans.view")
def plan_detail(plan_id: int):
    s = db_session()
    org = current_organization(s)
    return jsonify(serialize_plan(get_plan(s, org, plan_id)))


@bp.put("/plans/<int:plan_id>")
@require_permission("plans.edit")
def plan_update(plan_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    plan = get_plan(s, org, plan_id)
    payload = json_body()
    raise_for_errors(validate_plan_payload(payload))
    update_plan(s, plan, payload, u)
    s.commit()
    return jsonify(serialize_plan(plan))


@bp.post("/plans/<int:plan_id>/publish")
@require_permission("plans.publish")
def plan_publish(plan_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    plan = get_plan(s, org, plan_id)
    publish_plan(s, org, plan, u)
    s.commit()
    current_app.logger.info("Plan %s published (org=%s version=%s)", plan.id, org.id, plan.version)
    return jsonify(serialize_plan(plan))


@bp.get("/plans/<int:plan_id>/pdf")
@require_permission("plans.view")
def plan_pdf(plan_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    plan = get_plan(s, org, plan_id)
    data = build_wvpp_pdf(org, plan)
    filename = f"WVPP-{org.name.replace(' ', '-')}-v{plan.version}.pdf"
    record_event(
        s,
        actor=u,
        action="plan.pdf",
        entity_type="Plan",
        entity_id=str(plan.id),
        metadata={"version": plan.version, "size_bytes": len(data)},
    )
    s.commit()
    return send_file(io.BytesIO(data), mimetype="application/pdf", as_attachment=True, download_name=filename)


@bp.post("/portal/acknowledge-plan")
@require_permission("portal.view")
def portal_acknowledge_plan():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    employee = employee_for_user(s, u)
    plan = acknowledge_plan(s, org, employee, u)
    s.commit()
    return jsonify(
        {
            "success": True,
            "plan_id": plan.id,
            "version": plan.version,
            "acknowledged_at": employee.wvpp_acknowledged_at.isoformat(),
        }
    )
