from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.safework.audit import record_event
from app.safework.errors import ApiError
from app.safework.security import new_token, sha256_hex, token_matches
from app.safework.utils import iso, parse_date, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.models import User
    from app.safework.modules.anonymous.models import AnonymousReport, AnonymousThreadMessage
    from app.safework.modules.organizations.models import Organization

logger = logging.getLogger(__name__)

REPORT_TYPES = ("workplace_violence", "safety_concern", "harassment", "retaliation", "policy_violation", "other")
STATUSES = ("new", "under_review", "investigating", "resolved", "closed")
PRIORITIES = ("low", "medium", "high", "critical")
ADMIN_MESSAGE_TYPES = ("admin_question", "admin_update")
RESOLVED_STATUSES = ("resolved", "closed")
ACTIVE_STATUSES = ("under_review", "investigating")

TITLE_MAX = 200
SUBMISSIONS_PER_HOUR = 5
UPDATE_FIELDS = ("status", "priority", "assigned_to", "resolution", "linked_incident_id")


def validate_submission(payload: dict) -> list[str]:
    """Validate a public report submission. Returns list of errors."""
    errors: list[str] = []
    if not str(payload.get("organization_id") or "").strip():
        return ["organization_id is required"]
    title = str(payload.get("title") or "").strip()
    if not payload.get("report_type") or not title or not str(payload.get("description") or "").strip():
        return ["report_type, title, and description are required"]
    if len(title) > TITLE_MAX:
        errors.append(f"Title must be {TITLE_MAX} characters or fewer")
    if payload.get("report_type") not in REPORT_TYPES:
        errors.append("Invalid report type")
    if payload.get("incident_date"):
        try:
            parse_date(payload["incident_date"])
        except ValueError:
            errors.append("Incident date must be YYYY-MM-DD.")
    return errors


def _throttled(s: "Session", ip_hash: str) -> bool:
    from app.safework.modules.anonymous.models import AnonymousReport

    since = utcnow() - timedelta(hours=1)
    recent = (
        s.query(func.count(AnonymousReport.id))
        .filter(AnonymousReport.ip_hash == ip_hash, AnonymousReport.created_at >= since)
        .scalar()
    )
    return (recent or 0) >= SUBMISSIONS_PER_HOUR


def submit_report(s: "Session", payload: dict, client_ip: str | None) -> tuple["AnonymousReport", str]:
    """
    Create a report for the organization whose public_id is payload["organization_id"].
    Returns (report, access_token); the plaintext token is never stored.
    """
    from app.safework.modules.anonymous.models import AnonymousReport
    from app.safework.modules.organizations.models import Organization

    org = (
        s.query(Organization)
        .filter(Organization.public_id == str(payload["organization_id"]).strip())
        .one_or_none()
    )
    if not org:
        raise ApiError("Organization not found", 404)

    ip_hash = sha256_hex(client_ip or "unknown")
    if _throttled(s, ip_hash):
        logger.warning("Anonymous submission throttled (org=%s)", org.id)
        raise ApiError("Too many reports submitted. Please try again later.", 429)

    token = new_token()
    now = utcnow()
    witnesses = payload.get("witnesses_present")
    report = AnonymousReport(
        organization_id=org.id,
        access_token_hash=sha256_hex(token),
        report_type=payload["report_type"],
        title=str(payload["title"]).strip(),
        description=str(payload["description"]).strip(),
        incident_date=parse_date(payload.get("incident_date")),
        incident_location=str(payload.get("incident_location") or "").strip() or None,
        witnesses_present=bool(witnesses) if witnesses is not None else None,
        status="new",
        priority="medium",
        submitted_via="web",
        ip_hash=ip_hash,
        created_at=now,
        updated_at=now,
    )
    s.add(report)
    s.flush()
    logger.info("Anonymous report %s submitted (org=%s type=%s)", report.anonymous_id, org.id, report.report_type)
    return report, token


def verify_reporter(s: "Session", anonymous_id: Any, access_token: Any) -> "AnonymousReport":
    from app.safework.modules.anonymous.models import AnonymousReport

    if not anonymous_id or not access_token:
        raise ApiError("anonymous_id and access_token are required")
    report = (
        s.query(AnonymousReport)
        .filter(AnonymousReport.anonymous_id == str(anonymous_id).strip())
        .one_or_none()
    )
    if not report:
        raise ApiError("Report not found", 404)
    if not token_matches(str(access_token).strip(), report.access_token_hash):
        raise ApiError("Invalid access code", 403)
    return report


def reporter_view(report: "AnonymousReport") -> dict:
    """Status payload for the reporter; marks admin messages as read by the reporter."""
    thread = []
    for msg in report.messages:
        if msg.message_type in ADMIN_MESSAGE_TYPES and not msg.read_by_reporter:
            msg.read_by_reporter = True
        thread.append(
            {
                "id": msg.id,
                "message_type": msg.message_type,
                "content": msg.content,
                "admin_name": msg.admin_name if msg.message_type in ADMIN_MESSAGE_TYPES else None,
                "read_by_reporter": msg.read_by_reporter,
                "created_at": iso(msg.created_at),
            }
        )
    out = {
        "anonymous_id": report.anonymous_id,
        "report_type": report.report_type,
        "title": report.title,
        "description": report.description,
        "status": report.status,
        "priority": report.priority,
        "incident_date": iso(report.incident_date),
        "incident_location": report.incident_location,
        "resolved_at": iso(report.resolved_at),
        "created_at": iso(report.created_at),
    }
    if report.status in RESOLVED_STATUSES:
        out["resolution"] = report.resolution
    return {"report": out, "thread": thread}


def reporter_respond(s: "Session", report: "AnonymousReport", content: Any) -> "AnonymousThreadMessage":
    from app.safework.modules.anonymous.models import AnonymousThreadMessage

    if not isinstance(content, str) or not content.strip():
        raise ApiError("content must be a non-empty string")
    if report.status == "closed":
        raise ApiError("This report has been closed and no longer accepts responses")
    msg = AnonymousThreadMessage(
        message_type="reporter_response",
        content=content.strip(),
        read_by_admin=False,
        read_by_reporter=True,
        created_at=utcnow(),
    )
    report.messages.append(msg)
    report.updated_at = utcnow()
    s.flush()
    return msg


# Admin side --------------------------------------------------------------


def list_reports(
    s: "Session",
    org: "Organization",
    *,
    status: str | None = None,
    report_type: str | None = None,
    priority: str | None = None,
    limit: int = 100,
) -> list["AnonymousReport"]:
    from app.safework.modules.anonymous.models import AnonymousReport

    q = s.query(AnonymousReport).filter(AnonymousReport.organization_id == org.id)
    if status:
        q = q.filter(AnonymousReport.status == status)
    if report_type:
        q = q.filter(AnonymousReport.report_type == report_type)
    if priority:
        q = q.filter(AnonymousReport.priority == priority)
    return q.order_by(AnonymousReport.created_at.desc(), AnonymousReport.id.desc()).limit(limit).all()


def report_summary(s: "Session", org: "Organization") -> dict:
    from app.safework.modules.anonymous.models import AnonymousReport

    counts = dict(
        s.query(AnonymousReport.status, func.count(AnonymousReport.id))
        .filter(AnonymousReport.organization_id == org.id)
        .group_by(AnonymousReport.status)
        .all()
    )
    return {
        "total": sum(counts.values()),
        "new": counts.get("new", 0),
        "active": sum(counts.get(st, 0) for st in ACTIVE_STATUSES),
        "resolved": sum(counts.get(st, 0) for st in RESOLVED_STATUSES),
    }


def get_report(s: "Session", org: "Organization", report_id: int) -> "AnonymousReport":
    from app.safework.modules.anonymous.models import AnonymousReport

    report = s.get(AnonymousReport, report_id)
    if not report or report.organization_id != org.id:
        raise ApiError("Report not found", 404)
    return report


def validate_report_update(payload: dict) -> list[str]:
    errors: list[str] = []
    if "status" in payload and payload["status"] not in STATUSES:
        errors.append(f"Invalid status. Must be one of: {', '.join(STATUSES)}")
    if "priority" in payload and payload["priority"] not in PRIORITIES:
        errors.append(f"Invalid priority. Must be one of: {', '.join(PRIORITIES)}")
    raw = payload.get("linked_incident_id")
    if raw not in (None, ""):
        try:
            int(raw)
        except (TypeError, ValueError):
            errors.append("linked_incident_id must be an integer.")
    return errors


def update_report(s: "Session", org: "Organization", report: "AnonymousReport", payload: dict, user: "User") -> "AnonymousReport":
    from app.safework.modules.anonymous.models import AnonymousReportNote
    from app.safework.modules.incidents.service import get_incident

    now = utcnow()
    updated: list[str] = []
    for field in UPDATE_FIELDS:
        if field not in payload:
            continue
        raw = payload[field]
        if field == "linked_incident_id":
            value = get_incident(s, org, int(raw)).id if raw not in (None, "") else None
        elif field in ("assigned_to", "resolution"):
            value = str(raw or "").strip() or None
        else:
            value = raw
        setattr(report, field, value)
        updated.append(field)

    if payload.get("status") in RESOLVED_STATUSES:
        report.resolved_at = now

    note = str(payload.get("internal_note") or "").strip()
    if note:
        report.notes.append(
            AnonymousReportNote(content=note, added_by_user_id=user.id, added_by_name=user.display_name, created_at=now)
        )
        updated.append("internal_note")

    report.updated_at = now
    record_event(
        s,
        actor=user,
        action="anonymous.update",
        entity_type="AnonymousReport",
        entity_id=str(report.id),
        metadata={"anonymous_id": report.anonymous_id, "fields_updated": updated, "status": report.status},
    )
    return report


def post_admin_message(
    s: "Session",
    report: "AnonymousReport",
    payload: dict,
    user: "User",
) -> "AnonymousThreadMessage":
    from app.safework.modules.anonymous.models import AnonymousThreadMessage

    content = payload.get("content")
    if not isinstance(content, str) or not content.strip():
        raise ApiError("content must be a non-empty string")
    message_type = payload.get("message_type") or "admin_question"
    if message_type not in ADMIN_MESSAGE_TYPES:
        raise ApiError(f"message_type must be one of: {', '.join(ADMIN_MESSAGE_TYPES)}")

    now = utcnow()
    msg = AnonymousThreadMessage(
        message_type=message_type,
        content=content.strip(),
        admin_user_id=user.id,
        admin_name=str(payload.get("admin_name") or "").strip() or "Safety Team",
        read_by_admin=True,
        read_by_reporter=False,
        created_at=now,
    )
    report.messages.append(msg)
    if report.status == "new":
        report.status = "under_review"
    report.updated_at = now
    s.flush()

    record_event(
        s,
        actor=user,
        action="anonymous.respond",
        entity_type="AnonymousReport",
        entity_id=str(report.id),
        metadata={"anonymous_id": report.anonymous_id, "message_type": message_type, "message_id": msg.id},
    )
    return msg


def serialize_message(msg: "AnonymousThreadMessage") -> dict:
    return {
        "id": msg.id,
        "message_type": msg.message_type,
        "content": msg.content,
        "admin_name": msg.admin_name,
        "read_by_admin": msg.read_by_admin,
        "read_by_reporter": msg.read_by_reporter,
        "created_at": iso(msg.created_at),
    }


def serialize_report(report: "AnonymousReport", *, detail: bool = False) -> dict:
    out: dict[str, Any] = {
        "id": report.id,
        "anonymous_id": report.anonymous_id,
        "report_type": report.report_type,
        "title": report.title,
        "description": report.description,
        "status": report.status,
        "priority": report.priority,
        "incident_date": iso(report.incident_date),
        "incident_location": report.incident_location,
        "assigned_to": report.assigned_to,
        "resolution": report.resolution,
        "resolved_at": iso(report.resolved_at),
        "linked_incident_id": report.linked_incident_id,
        "created_at": iso(report.created_at),
        "updated_at": iso(report.updated_at),
    }
    if detail:
        out["witnesses_present"] = report.witnesses_present
        out["internal_notes"] = [
            {"id": n.id, "content": n.content, "added_by": n.added_by_name, "created_at": iso(n.created_at)}
            for n in report.notes
        ]
    else:
        out["thread_count"] = len(report.messages)
        out["unread_responses"] = sum(
            1 for m in report.messages if m.message_type == "reporter_response" and not m.read_by_admin
        )
    return out


def admin_view(report: "AnonymousReport") -> dict:
    """Full report for investigators; marks reporter responses read by admin."""
    for msg in report.messages:
        if msg.message_type == "reporter_response" and not msg.read_by_admin:
            msg.read_by_admin = True
    return {
        "report": serialize_report(report, detail=True),
        "thread": [serialize_message(m) for m in report.messages],
    }
