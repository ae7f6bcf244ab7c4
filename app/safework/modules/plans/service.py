from __future__ import annotations

import copy
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from app.safework.audit import record_event
from app.safework.constants import DEFAULT_RECORDKEEPING, INDUSTRY_HAZARDS, RISK_LEVELS, TRAINING_TOPICS, VIOLENCE_TYPES
from app.safework.errors import ApiError
from app.safework.utils import iso, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.models import User
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.organizations.models import Organization
    from app.safework.modules.plans.models import Plan


PLAN_STATUSES = ("draft", "active", "archived")
REVIEW_INTERVAL = timedelta(days=365)

LIST_SECTIONS = ("responsible_persons", "hazard_assessments")


def default_sections() -> dict[str, Any]:
    """Starting values for a new plan (the parts SB 553 fixes regardless of employer)."""
    return {
        "communication_system": {
            "new_employee_orientation": True,
            "regular_meetings": True,
            "posted_information": True,
            "anonymous_reporting": True,
        },
        "training_program": {"training_topics": list(TRAINING_TOPICS)},
        "recordkeeping_procedures": dict(DEFAULT_RECORDKEEPING),
        "plan_accessibility": {"electronic_access": True},
        "post_incident_procedures": {"counseling_available": False},
    }


def industry_hazards(industry: str) -> list[dict]:
    """Hazard assessments pre-filled from the industry catalogue."""
    now = iso(utcnow())
    return [
        {
            "hazard_type": h["type"],
            "description": h["description"],
            "risk_level": h["risk_level"],
            "control_measures": list(h["controls"]),
            "assessed_at": now,
            "assessed_by": None,
        }
        for h in INDUSTRY_HAZARDS.get(industry) or INDUSTRY_HAZARDS["other"]
    ]


def _validate_person(person: Any, label: str) -> list[str]:
    if not isinstance(person, dict):
        return [f"{label} must be an object."]
    missing = [k for k in ("name", "title", "phone", "email") if not str(person.get(k) or "").strip()]
    if missing:
        return [f"{label} is missing: {', '.join(missing)}."]
    return []


def validate_plan_payload(payload: dict) -> list[str]:
    """Validate plan sections present in the payload. Returns list of errors."""
    from app.safework.modules.plans.models import PLAN_SECTIONS

    errors: list[str] = []
    for section in PLAN_SECTIONS:
        if section not in payload or payload[section] is None:
            continue
        expected = list if section in LIST_SECTIONS else dict
        if not isinstance(payload[section], expected):
            errors.append(f"{section} must be {'a list' if expected is list else 'an object'}.")

    for i, person in enumerate(payload.get("responsible_persons") or [], start=1):
        errors.extend(_validate_person(person, f"Responsible person #{i}"))

    er = payload.get("emergency_response")
    if isinstance(er, dict):
        for i, person in enumerate(er.get("emergency_contacts") or [], start=1):
            errors.extend(_validate_person(person, f"Emergency contact #{i}"))

    hazards = payload.get("hazard_assessments")
    if isinstance(hazards, list):
        for i, h in enumerate(hazards, start=1):
            if not isinstance(h, dict):
                errors.append(f"Hazard #{i} must be an object.")
                continue
            if h.get("hazard_type") not in VIOLENCE_TYPES:
                errors.append(f"Hazard #{i}: invalid hazard type. Must be one of: {', '.join(VIOLENCE_TYPES)}")
            if not str(h.get("description") or "").strip():
                errors.append(f"Hazard #{i}: description is required.")
            if h.get("risk_level") not in RISK_LEVELS:
                errors.append(f"Hazard #{i}: invalid risk level. Must be one of: {', '.join(RISK_LEVELS)}")
    return errors


def _normalize_hazards(hazards: list[dict], user: "User") -> list[dict]:
    now = iso(utcnow())
    out = []
    for h in hazards:
        out.append(
            {
                "hazard_type": h["hazard_type"],
                "description": str(h["description"]).strip(),
                "risk_level": h["risk_level"],
                "control_measures": [str(c).strip() for c in h.get("control_measures") or [] if str(c).strip()],
                "assessed_at": h.get("assessed_at") or now,
                "assessed_by": h.get("assessed_by") or user.display_name,
            }
        )
    return out


def list_plans(s: "Session", org: "Organization") -> list["Plan"]:
    from app.safework.modules.plans.models import Plan

    return (
        s.query(Plan)
        .filter(Plan.organization_id == org.id)
        .order_by(Plan.created_at.desc(), Plan.id.desc())
        .all()
    )


def get_plan(s: "Session", org: "Organization", plan_id: int) -> "Plan":
    from app.safework.modules.plans.models import Plan

    plan = s.get(Plan, plan_id)
    if not plan or plan.organization_id != org.id:
        raise ApiError("Plan not found", 404)
    return plan


def active_plan(s: "Session", org: "Organization") -> "Plan | None":
    from app.safework.modules.plans.models import Plan

    return (
        s.query(Plan)
        .filter(Plan.organization_id == org.id, Plan.status == "active")
        .order_by(Plan.published_at.desc())
        .first()
    )


def _apply_sections(plan: "Plan", payload: dict, user: "User") -> list[str]:
    from app.safework.modules.plans.models import PLAN_SECTIONS

    updated = []
    for section in PLAN_SECTIONS:
        if section not in payload or payload[section] is None:
            continue
        value = copy.deepcopy(payload[section])
        if section == "hazard_assessments":
            value = _normalize_hazards(value, user)
        setattr(plan, section, value)
        updated.append(section)
    return updated


def create_plan(s: "Session", org: "Organization", payload: dict, user: "User") -> "Plan":
    from app.safework.modules.plans.models import Plan

    now = utcnow()
    plan = Plan(
        organization_id=org.id,
        version=1,
        status="draft",
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
        updated_by_user_id=user.id,
    )
    for section, value in default_sections().items():
        setattr(plan, section, value)
    _apply_sections(plan, payload, user)
    if payload.get("use_industry_defaults") and not payload.get("hazard_assessments"):
        plan.hazard_assessments = industry_hazards(org.industry)
    s.add(plan)
    s.flush()

    record_event(
        s,
        actor=user,
        action="plan.create",
        entity_type="Plan",
        entity_id=str(plan.id),
        metadata={"version": plan.version, "hazards": len(plan.hazard_assessments or [])},
    )
    return plan


def update_plan(s: "Session", plan: "Plan", payload: dict, user: "User") -> "Plan":
    if plan.status == "archived":
        raise ApiError("Archived plans cannot be edited")
    updated = _apply_sections(plan, payload, user)
    plan.updated_at = utcnow()
    plan.updated_by_user_id = user.id
    record_event(
        s,
        actor=user,
        action="plan.update",
        entity_type="Plan",
        entity_id=str(plan.id),
        metadata={"updated_fields": updated, "status": plan.status},
    )
    return plan


def publish_plan(s: "Session", org: "Organization", plan: "Plan", user: "User") -> "Plan":
    """Make plan the single active plan and restart the annual review clock."""
    from app.safework.modules.plans.models import Plan

    if plan.status == "archived":
        raise ApiError("Archived plans cannot be published")

    now = utcnow()
    others = (
        s.query(Plan)
        .filter(Plan.organization_id == org.id, Plan.status == "active", Plan.id != plan.id)
        .all()
    )
    for other in others:
        other.status = "archived"
        other.archived_at = now
        other.updated_at = now

    plan.status = "active"
    plan.published_at = now
    plan.version = (plan.version or 0) + 1
    plan.updated_at = now
    plan.updated_by_user_id = user.id

    org.wvpp_created_at = plan.published_at
    org.last_plan_review_date = now
    org.next_plan_review_due_date = now + REVIEW_INTERVAL
    org.updated_at = now

    record_event(
        s,
        actor=user,
        action="plan.publish",
        entity_type="Plan",
        entity_id=str(plan.id),
        metadata={"version": plan.version, "archived_plan_ids": [o.id for o in others]},
    )
    return plan


def acknowledge_plan(s: "Session", org: "Organization", employee: "Employee", user: "User") -> "Plan":
    plan = active_plan(s, org)
    if not plan:
        raise ApiError("No active plan to acknowledge", 404)
    now = utcnow()
    employee.wvpp_acknowledged_at = now
    employee.wvpp_acknowledged_version = plan.version
    employee.updated_at = now
    record_event(
        s,
        actor=user,
        action="plan.acknowledge",
        entity_type="Plan",
        entity_id=str(plan.id),
        metadata={"employee_id": employee.id, "version": plan.version},
    )
    return plan


def serialize_plan(plan: "Plan") -> dict:
    from app.safework.modules.plans.models import PLAN_SECTIONS

    out: dict[str, Any] = {
        "id": plan.id,
        "organization_id": plan.organization_id,
        "version": plan.version,
        "status": plan.status,
        "published_at": iso(plan.published_at),
        "archived_at": iso(plan.archived_at),
        "created_at": iso(plan.created_at),
        "updated_at": iso(plan.updated_at),
    }
    for section in PLAN_SECTIONS:
        value = getattr(plan, section)
        out[section] = value if value is not None else ([] if section in LIST_SECTIONS else {})
    return out
