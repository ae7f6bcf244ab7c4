from __future__ import annotations

import re
from datetime import date
from typing import TYPE_CHECKING, Any

from app.safework.audit import record_event
from app.safework.constants import INCIDENT_LOCATION_TYPES, INCIDENT_TYPES, PERPETRATOR_TYPES, VIOLENCE_TYPES
from app.safework.errors import ApiError
from app.safework.utils import iso, parse_date, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.models import User
    from app.safework.modules.incidents.models import Incident
    from app.safework.modules.organizations.models import Organization


INVESTIGATION_STATUSES = ("pending", "in_progress", "completed")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")

# section -> (boolean keys, text keys)
SECTIONS: dict[str, tuple[tuple[str, ...], tuple[str, ...]]] = {
    "circumstances": (
        (
            "usual_job_duties",
            "poorly_lit_area",
            "rushed",
            "low_staffing",
            "isolated",
            "unable_to_get_help",
            "community_setting",
            "unfamiliar_location",
        ),
        ("other",),
    ),
    "consequences": (
        ("security_contacted", "law_enforcement_contacted"),
        ("security_response", "law_enforcement_response", "actions_to_protect_employees"),
    ),
    "injuries": (("occurred",), ("description",)),
    "emergency_medical": (("contacted",), ("responder_type", "description")),
    "cal_osha_reporting": (("required",), ("reported_at", "representative_name")),
}


def _clean_section(raw: Any, bool_keys: tuple[str, ...], text_keys: tuple[str, ...]) -> dict:
    if not isinstance(raw, dict):
        return {}
    out: dict[str, Any] = {}
    for key in bool_keys:
        if key in raw:
            out[key] = bool(raw[key])
    for key in text_keys:
        value = (str(raw.get(key) or "")).strip()
        if value:
            out[key] = value
    return out


def validate_incident_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate incident creation/update payload. Returns list of errors."""
    errors: list[str] = []

    def present(key: str) -> bool:
        return not partial or key in payload

    if not partial and not payload.get("plan_id"):
        errors.append("Plan is required.")

    if present("incident_date"):
        try:
            d = parse_date(payload.get("incident_date"))
            if d is None:
                errors.append("Incident date is required.")
            elif d > date.today():
                errors.append("Incident date cannot be in the future.")
        except ValueError:
            errors.append("Incident date must be YYYY-MM-DD.")

    if present("incident_time") and not _TIME_RE.match(str(payload.get("incident_time") or "")):
        errors.append("Incident time must be HH:MM (24-hour).")

    if present("location"):
        loc = payload.get("location") if isinstance(payload.get("location"), dict) else {}
        if loc.get("type") not in INCIDENT_LOCATION_TYPES:
            errors.append(f"Invalid location type. Must be one of: {', '.join(INCIDENT_LOCATION_TYPES)}")
        if not (loc.get("description") or "").strip():
            errors.append("Location description is required.")

    wv_types = payload.get("workplace_violence_types")
    if wv_types is not None and (not isinstance(wv_types, list) or any(t not in VIOLENCE_TYPES for t in wv_types)):
        errors.append(f"Invalid workplace violence type. Must be any of: {', '.join(VIOLENCE_TYPES)}")

    inc_types = payload.get("incident_types")
    if inc_types is not None and (not isinstance(inc_types, list) or any(t not in INCIDENT_TYPES for t in inc_types)):
        errors.append(f"Invalid incident type. Must be any of: {', '.join(INCIDENT_TYPES)}")

    if present("detailed_description") and not (payload.get("detailed_description") or "").strip():
        errors.append("Detailed description is required.")

    if present("perpetrator_classification") and payload.get("perpetrator_classification") not in PERPETRATOR_TYPES:
        errors.append(f"Invalid perpetrator classification. Must be one of: {', '.join(PERPETRATOR_TYPES)}")

    if present("completed_by"):
        cb = payload.get("completed_by") if isinstance(payload.get("completed_by"), dict) else {}
        if not (cb.get("name") or "").strip() or not (cb.get("title") or "").strip():
            errors.append("Completed-by name and title are required.")

    status = payload.get("investigation_status")
    if status is not None and status not in INVESTIGATION_STATUSES:
        errors.append(f"Invalid investigation status. Must be one of: {', '.join(INVESTIGATION_STATUSES)}")

    actions = payload.get("corrective_actions_taken")
    if actions is not None and not isinstance(actions, list):
        errors.append("Corrective actions must be a list.")
    return errors


def list_incidents(
    s: "Session",
    org: "Organization",
    *,
    status: str | None = None,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list["Incident"]:
    from app.safework.modules.incidents.models import Incident

    q = s.query(Incident).filter(Incident.organization_id == org.id)
    if status:
        q = q.filter(Incident.investigation_status == status)
    if start_date:
        q = q.filter(Incident.incident_date >= start_date)
    if end_date:
        q = q.filter(Incident.incident_date <= end_date)
    return q.order_by(Incident.incident_date.desc(), Incident.id.desc()).all()


def get_incident(s: "Session", org: "Organization", incident_id: int) -> "Incident":
    from app.safework.modules.incidents.models import Incident

    incident = s.get(Incident, incident_id)
    if not incident or incident.organization_id != org.id:
        raise ApiError("Incident not found", 404)
    return incident


def _apply(incident: "Incident", payload: dict) -> dict[str, Any]:
    """Copy payload fields onto the incident; returns {field: {"old","new"}} for scalar changes."""
    changes: dict[str, Any] = {}

    def _set(attr: str, new: Any) -> None:
        old = getattr(incident, attr)
        if old != new:
            changes[attr] = {"old": iso(old) if isinstance(old, date) else old, "new": iso(new) if isinstance(new, date) else new}
            setattr(incident, attr, new)

    if "incident_date" in payload:
        _set("incident_date", parse_date(payload["incident_date"]))
    if "incident_time" in payload:
        _set("incident_time", str(payload["incident_time"]).strip())
    if "location" in payload:
        _set("location_type", payload["location"]["type"])
        _set("location_description", payload["location"]["description"].strip())
    if "workplace_violence_types" in payload:
        _set("workplace_violence_types", list(dict.fromkeys(payload["workplace_violence_types"] or [])))
    if "incident_types" in payload:
        _set("incident_types", list(dict.fromkeys(payload["incident_types"] or [])))
    if "detailed_description" in payload:
        _set("detailed_description", payload["detailed_description"].strip())
    if "perpetrator_classification" in payload:
        _set("perpetrator_classification", payload["perpetrator_classification"])
    for section, (bool_keys, text_keys) in SECTIONS.items():
        if section in payload:
            _set(section, _clean_section(payload[section], bool_keys, text_keys))
    if "completed_by" in payload:
        _set("completed_by_name", payload["completed_by"]["name"].strip())
        _set("completed_by_title", payload["completed_by"]["title"].strip())
    if "investigation_status" in payload:
        _set("investigation_status", payload["investigation_status"])
    if "investigation_notes" in payload:
        _set("investigation_notes", (payload["investigation_notes"] or "").strip() or None)
    if "corrective_actions_taken" in payload:
        _set("corrective_actions_taken", [str(a).strip() for a in payload["corrective_actions_taken"] or [] if str(a).strip()])
    return changes


def _resolve_plan_id(s: "Session", org: "Organization", raw: Any) -> int:
    from app.safework.modules.plans.models import Plan

    try:
        plan = s.get(Plan, int(raw))
    except (TypeError, ValueError):
        plan = None
    if not plan or plan.organization_id != org.id:
        raise ApiError("Plan not found", 404)
    return plan.id


def create_incident(s: "Session", org: "Organization", payload: dict, user: "User") -> "Incident":
    from app.safework.modules.incidents.models import Incident

    now = utcnow()
    incident = Incident(
        organization_id=org.id,
        plan_id=_resolve_plan_id(s, org, payload.get("plan_id")),
        investigation_status="pending",
        corrective_actions_taken=[],
        completed_at=now,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    _apply(incident, payload)
    s.add(incident)
    s.flush()

    record_event(
        s,
        actor=user,
        action="incident.create",
        entity_type="Incident",
        entity_id=str(incident.id),
        metadata={
            "incident_date": iso(incident.incident_date),
            "incident_types": incident.incident_types,
            "perpetrator_classification": incident.perpetrator_classification,
        },
    )
    return incident


def update_incident(s: "Session", org: "Organization", incident: "Incident", payload: dict, user: "User") -> "Incident":
    if "plan_id" in payload:
        incident.plan_id = _resolve_plan_id(s, org, payload["plan_id"])
    changes = _apply(incident, payload)
    incident.updated_at = utcnow()
    incident.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="incident.update",
        entity_type="Incident",
        entity_id=str(incident.id),
        metadata={"updated_fields": sorted(changes), "status": incident.investigation_status},
    )
    return incident


def serialize_incident(incident: "Incident") -> dict:
    return {
        "id": incident.id,
        "plan_id": incident.plan_id,
        "incident_date": iso(incident.incident_date),
        "incident_time": incident.incident_time,
        "location": {"type": incident.location_type, "description": incident.location_description},
        "workplace_violence_types": list(incident.workplace_violence_types or []),
        "incident_types": list(incident.incident_types or []),
        "detailed_description": incident.detailed_description,
        "perpetrator_classification": incident.perpetrator_classification,
        "circumstances": incident.circumstances or {},
        "consequences": incident.consequences or {},
        "injuries": incident.injuries or {},
        "emergency_medical": incident.emergency_medical or {},
        "cal_osha_reporting": incident.cal_osha_reporting or {},
        "completed_by": {"name": incident.completed_by_name, "title": incident.completed_by_title},
        "completed_at": iso(incident.completed_at),
        "investigation_status": incident.investigation_status,
        "investigation_notes": incident.investigation_notes,
        "corrective_actions_taken": list(incident.corrective_actions_taken or []),
        "created_at": iso(incident.created_at),
        "updated_at": iso(incident.updated_at),
    }
