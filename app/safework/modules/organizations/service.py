from __future__ import annotations

from typing import TYPE_CHECKING, Any

from app.safework.audit import record_event
from app.safework.constants import INDUSTRIES, WORKPLACE_TYPES
from app.safework.errors import ApiError
from app.safework.rbac import grant_role
from app.safework.utils import iso, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.models import User
    from app.safework.modules.organizations.models import Organization


SETTINGS_FIELDS = ("name", "dba", "address", "phone", "email", "industry", "employee_count", "workplace_types")
ADDRESS_FIELDS = ("street", "city", "state", "zip")


def _address(payload: dict) -> dict:
    raw = payload.get("address")
    return raw if isinstance(raw, dict) else {}


def validate_organization_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate onboarding (partial=False) or settings update payload. Returns list of errors."""
    errors: list[str] = []
    address = _address(payload)

    def _required(label: str, value: Any, present: bool) -> None:
        if (not partial or present) and not str(value or "").strip():
            errors.append(f"{label} is required.")

    _required("Name", payload.get("name"), "name" in payload)
    _required("Phone", payload.get("phone"), "phone" in payload)
    _required("Email", payload.get("email"), "email" in payload)
    if not partial or "address" in payload:
        for key in ("street", "city", "zip"):
            if not str(address.get(key) or "").strip():
                errors.append(f"Address {key} is required.")
        state = str(address.get("state") or "CA").strip().upper()
        if len(state) != 2:
            errors.append("Address state must be a 2-letter code.")

    if not partial or "industry" in payload:
        industry = (payload.get("industry") or "").strip()
        if industry not in INDUSTRIES:
            errors.append(f"Invalid industry. Must be one of: {', '.join(INDUSTRIES)}")

    if not partial or "employee_count" in payload:
        try:
            count = int(payload.get("employee_count"))
            if count < 1:
                errors.append("Employee count must be at least 1.")
        except (TypeError, ValueError):
            errors.append("Employee count must be a number.")

    types = payload.get("workplace_types")
    if types is not None:
        if not isinstance(types, list) or any(t not in WORKPLACE_TYPES for t in types):
            errors.append(f"Invalid workplace type. Must be any of: {', '.join(WORKPLACE_TYPES)}")

    settings = payload.get("settings")
    if settings is not None:
        if not isinstance(settings, dict):
            errors.append("Settings must be an object.")
        else:
            score = settings.get("quiz_passing_score")
            if score is not None and (not isinstance(score, int) or not 0 <= score <= 100):
                errors.append("Quiz passing score must be between 0 and 100.")
            days = settings.get("training_reminder_days")
            if days is not None and (not isinstance(days, list) or any(not isinstance(d, int) or d < 0 for d in days)):
                errors.append("Training reminder days must be a list of non-negative integers.")
    return errors


def create_organization(s: "Session", payload: dict, user: "User") -> "Organization":
    """Onboarding: create the caller's organization and make them its administrator."""
    from app.safework.modules.organizations.models import Organization

    if user.organization_id:
        raise ApiError("Organization already exists for this account", 409)

    address = _address(payload)
    now = utcnow()
    org = Organization(
        name=payload["name"].strip(),
        dba=(payload.get("dba") or "").strip() or None,
        street=address["street"].strip(),
        city=address["city"].strip(),
        state=(address.get("state") or "CA").strip().upper(),
        zip=str(address["zip"]).strip(),
        phone=payload["phone"].strip(),
        email=payload["email"].strip().lower(),
        industry=payload["industry"].strip(),
        employee_count=int(payload["employee_count"]),
        workplace_types=list(payload.get("workplace_types") or []),
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
    )
    s.add(org)
    s.flush()

    user.organization_id = org.id
    grant_role(s, user, "org_admin")

    record_event(
        s,
        actor=user,
        action="organization.create",
        entity_type="Organization",
        entity_id=str(org.id),
        metadata={"name": org.name, "industry": org.industry},
        organization_id=org.id,
    )
    return org


def update_settings(s: "Session", org: "Organization", payload: dict, user: "User") -> "Organization":
    """Apply whitelisted organization fields and the settings object."""
    updated: list[str] = []
    for field in SETTINGS_FIELDS:
        if field not in payload:
            continue
        value = payload[field]
        if field == "address":
            address = _address(payload)
            for key in ADDRESS_FIELDS:
                if key in address:
                    v = str(address[key] or "").strip()
                    setattr(org, key, v.upper() if key == "state" else v)
        elif field == "employee_count":
            org.employee_count = int(value)
        elif field == "workplace_types":
            org.workplace_types = list(value or [])
        elif field == "dba":
            org.dba = (value or "").strip() or None
        elif field == "email":
            org.email = (value or "").strip().lower()
        else:
            setattr(org, field, (value or "").strip())
        updated.append(field)

    if isinstance(payload.get("settings"), dict):
        merged = org.settings_value
        merged.update(payload["settings"])
        org.settings = merged
        updated.append("settings")

    org.updated_at = utcnow()
    record_event(
        s,
        actor=user,
        action="settings.update",
        entity_type="Organization",
        entity_id=str(org.id),
        metadata={"updated_fields": updated},
    )
    return org


def serialize_organization(org: "Organization") -> dict:
    return {
        "id": org.id,
        "public_id": org.public_id,
        "name": org.name,
        "dba": org.dba,
        "address": {"street": org.street, "city": org.city, "state": org.state, "zip": org.zip},
        "phone": org.phone,
        "email": org.email,
        "industry": org.industry,
        "employee_count": org.employee_count,
        "workplace_types": list(org.workplace_types or []),
        "plan": org.plan,
        "plan_expires_at": iso(org.plan_expires_at),
        "stripe_customer_id": org.stripe_customer_id,
        "stripe_subscription_id": org.stripe_subscription_id,
        "settings": org.settings_value,
        "compliance": {
            "wvpp_created_at": iso(org.wvpp_created_at),
            "last_training_date": iso(org.last_training_date),
            "next_training_due_date": iso(org.next_training_due_date),
            "last_plan_review_date": iso(org.last_plan_review_date),
            "next_plan_review_due_date": iso(org.next_plan_review_due_date),
            "score": org.compliance_score,
        },
        "created_at": iso(org.created_at),
        "updated_at": iso(org.updated_at),
    }
