from __future__ import annotations

from flask import Blueprint, jsonify, request

from app.safework.auth import current_organization, current_user
from app.safework.db import db_session
from app.safework.errors import ApiError, json_body, raise_for_errors
from app.safework.modules.incidents.service import (
    create_incident,
    get_incident,
    list_incidents,
    serialize_incident,
    update_incident,
    validate_incident_payload,
)
from app.safework.rbac import require_permission
from app.safework.utils import parse_date

bp = Blueprint("incidents", __name__)


@bp.get("/incidents")
@require_permission("incidents.view")
def incidents_list():
    s = db_session()
    org = current_organization(s)
    try:
        start = parse_date(request.args.get("start_date"))
        end = parse_date(request.args.get("end_date"))
    except ValueError:
        raise ApiError("Dates must be YYYY-MM-DD")
    status = (request.args.get("status") or "").strip() or None
    incidents = list_incidents(s, org, status=status, start_date=start, end_date=end)
    return jsonify([serialize_incident(i) for i in incidents])


@bp.post("/incidents")
@require_permission("incidents.edit")
def incidents_create():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    payload = json_body()
    raise_for_errors(validate_incident_payload(payload))
    incident = create_incident(s, org, payload, u)
    s.commit()
    return jsonify(serialize_incident(incident)), 201


@bp.get("/incidents/<int:incident_id>")
@require_permission("incidents.view")
def incident_detail(incident_id: int):
    s = db_session()
    org = current_organization(s)
    return jsonify(serialize_incident(get_incident(s, org, incident_id)))


@bp.put("/incidents/<int:incident_id>")
@require_permission("incidents.edit")
def incident_update(incident_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    incident = get_incident(s, org, incident_id)
    payload = json_body()
    raise_for_errors(validate_incident_payload(payload, partial=True))
    update_incident(s, org, incident, payload, u)
    s.commit()
    return jsonify(serialize_incident(incident))
