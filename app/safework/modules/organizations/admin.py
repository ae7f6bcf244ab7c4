from __future__ import annotations

from flask import Blueprint, jsonify

from app.safework.auth import current_organization, current_user
from app.safework.db import db_session
from app.safework.errors import json_body, raise_for_errors
from app.safework.modules.organizations.service import (
    create_organization,
    serialize_organization,
    update_settings,
    validate_organization_payload,
)
from app.safework.rbac import require_permission

bp = Blueprint("organizations", __name__)


@bp.get("/organizations")
def organization_get():
    s = db_session()
    return jsonify(serialize_organization(current_organization(s)))


@bp.post("/organizations")
def organization_create():
    # Onboarding: the caller has no organization (and so no role) yet.
    s = db_session()
    u = current_user()
    payload = json_body()
    raise_for_errors(validate_organization_payload(payload))
    org = create_organization(s, payload, u)
    s.commit()
    return jsonify(serialize_organization(org)), 201


@bp.get("/settings")
@require_permission("org.view")
def settings_get():
    s = db_session()
    return jsonify(serialize_organization(current_organization(s)))


@bp.put("/settings")
@require_permission("org.edit")
def settings_put():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    payload = json_body()
    raise_for_errors(validate_organization_payload(payload, partial=True))
    update_settings(s, org, payload, u)
    s.commit()
    return jsonify(serialize_organization(org))
