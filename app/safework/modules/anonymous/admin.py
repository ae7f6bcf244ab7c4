from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.safework.auth import current_organization, current_user
from app.safework.db import db_session
from app.safework.errors import json_body, raise_for_errors
from app.safework.modules.anonymous import service
from app.safework.rbac import require_permission
from app.safework.utils import iso

bp = Blueprint("anonymous", __name__)


def _client_ip() -> str | None:
    forwarded = (request.headers.get("X-Forwarded-For") or "").split(",")[0].strip()
    return forwarded or request.remote_addr


# Public (token-authenticated) -----------------------------------------------


@bp.post("/anonymous/submit")
def submit_report():
    s = db_session()
    payload = json_body()
    raise_for_errors(service.validate_submission(payload))
    report, token = service.submit_report(s, payload, _client_ip())
    s.commit()
    return (
        jsonify(
            {
                "success": True,
                "anonymous_id": report.anonymous_id,
                "access_token": token,
                "status": report.status,
                "message": "Your report has been submitted anonymously. Save your Report ID and Access Code "
                "to check status and respond to follow-up questions.",
            }
        ),
        201,
    )


@bp.post("/anonymous/status")
def report_status():
    s = db_session()
    payload = json_body()
    report = service.verify_reporter(s, payload.get("anonymous_id"), payload.get("access_token"))
    out = service.reporter_view(report)
    s.commit()
    return jsonify(out)


@bp.post("/anonymous/respond")
def reporter_respond():
    s = db_session()
    payload = json_body()
    report = service.verify_reporter(s, payload.get("anonymous_id"), payload.get("access_token"))
    msg = service.reporter_respond(s, report, payload.get("content"))
    s.commit()
    return (
        jsonify(
            {
                "success": True,
                "message": {"id": msg.id, "message_type": msg.message_type, "content": msg.content, "created_at": iso(msg.created_at)},
            }
        ),
        201,
    )


# Admin ------------------------------------------------------------------------


@bp.get("/anonymous/reports")
@require_permission("anonymous.view")
def reports_list():
    s = db_session()
    org = current_organization(s)
    reports = service.list_reports(
        s,
        org,
        status=(request.args.get("status") or "").strip() or None,
        report_type=(request.args.get("report_type") or "").strip() or None,
        priority=(request.args.get("priority") or "").strip() or None,
    )
    return jsonify(
        {
            "reports": [service.serialize_report(r) for r in reports],
            "summary": service.report_summary(s, org),
        }
    )


@bp.get("/anonymous/reports/<int:report_id>")
@require_permission("anonymous.view")
def report_detail(report_id: int):
    s = db_session()
    org = current_organization(s)
    out = service.admin_view(service.get_report(s, org, report_id))
    s.commit()
    return jsonify(out)


@bp.put("/anonymous/reports/<int:report_id>")
@require_permission("anonymous.manage")
def report_update(report_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    report = service.get_report(s, org, report_id)
    payload = json_body()
    raise_for_errors(service.validate_report_update(payload))
    service.update_report(s, org, report, payload, u)
    s.commit()
    return jsonify(service.serialize_report(report, detail=True))


@bp.post("/anonymous/reports/<int:report_id>/question")
@require_permission("anonymous.manage")
def report_question(report_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    report = service.get_report(s, org, report_id)
    msg = service.post_admin_message(s, report, json_body(), u)
    s.commit()
    current_app.logger.info("Follow-up posted on %s (org=%s type=%s)", report.anonymous_id, org.id, msg.message_type)
    return jsonify({"success": True, "message": service.serialize_message(msg), "status": report.status}), 201
