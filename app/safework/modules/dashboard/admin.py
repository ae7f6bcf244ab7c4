from __future__ import annotations

from flask import Blueprint, jsonify

from app.safework.auth import current_organization
from app.safework.db import db_session
from app.safework.modules.dashboard.service import dashboard
from app.safework.rbac import require_permission

bp = Blueprint("dashboard", __name__)


@bp.get("/dashboard")
@require_permission("dashboard.view")
def dashboard_view():
    s = db_session()
    org = current_organization(s)
    out = dashboard(s, org)
    s.commit()
    return jsonify(out)
