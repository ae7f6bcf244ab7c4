from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from werkzeug.security import generate_password_hash

from app.safework import mailer
from app.safework.audit import record_event
from app.safework.errors import ApiError
from app.safework.models import User
from app.safework.rbac import role_key_for_employee_role, set_builtin_role
from app.safework.security import new_token, sha256_hex
from app.safework.utils import iso, parse_date, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.organizations.models import Organization

logger = logging.getLogger(__name__)

EMPLOYEE_ROLES = ("employee", "supervisor", "manager", "wvpp_administrator", "owner")
INVITE_STATUSES = ("pending", "sent", "accepted", "expired")
INVITE_TTL = timedelta(days=7)

EDITABLE_FIELDS = ("first_name", "last_name", "email", "phone", "department", "job_title", "role", "hire_date", "is_active")


def validate_employee_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate employee creation/update payload. Returns list of errors."""
    errors: list[str] = []
    for field, label in (("first_name", "First name"), ("last_name", "Last name"), ("email", "Email")):
        if (not partial or field in payload) and not (payload.get(field) or "").strip():
            errors.append(f"{label} is required.")
    email = (payload.get("email") or "").strip()
    if email and "@" not in email:
        errors.append("Email is invalid.")
    role = (payload.get("role") or "").strip()
    if role and role not in EMPLOYEE_ROLES:
        errors.append(f"Invalid role. Must be one of: {', '.join(EMPLOYEE_ROLES)}")
    if payload.get("hire_date"):
        try:
            parse_date(payload.get("hire_date"))
        except ValueError:
            errors.append("Hire date must be YYYY-MM-DD.")
    return errors


def list_employees(
    s: "Session",
    org: "Organization",
    *,
    active: str | None = None,
    role: str | None = None,
    search: str | None = None,
) -> list["Employee"]:
    from app.safework.modules.employees.models import Employee

    q = s.query(Employee).filter(Employee.organization_id == org.id)
    if active in ("true", "false"):
        q = q.filter(Employee.is_active.is_(active == "true"))
    if role:
        q = q.filter(Employee.role == role)
    if search:
        like = f"%{search}%"
        q = q.filter(
            or_(
                Employee.first_name.ilike(like),
                Employee.last_name.ilike(like),
                Employee.email.ilike(like),
                Employee.job_title.ilike(like),
                Employee.department.ilike(like),
            )
        )
    return q.order_by(Employee.last_name.asc(), Employee.first_name.asc()).all()


def get_employee(s: "Session", org: "Organization", employee_id: int) -> "Employee":
    from app.safework.modules.employees.models import Employee

    employee = s.get(Employee, employee_id)
    if not employee or employee.organization_id != org.id:
        raise ApiError("Employee not found", 404)
    return employee


def _email_taken(s: "Session", org: "Organization", email: str, exclude_id: int | None = None) -> bool:
    from app.safework.modules.employees.models import Employee

    q = s.query(Employee.id).filter(Employee.organization_id == org.id, Employee.email == email)
    if exclude_id is not None:
        q = q.filter(Employee.id != exclude_id)
    return q.first() is not None


def create_employee(s: "Session", org: "Organization", payload: dict, user: User) -> "Employee":
    from app.safework.modules.employees.models import Employee

    email = payload["email"].strip().lower()
    if _email_taken(s, org, email):
        raise ApiError("An employee with this email already exists in your organization", 409)

    now = utcnow()
    employee = Employee(
        organization_id=org.id,
        first_name=payload["first_name"].strip(),
        last_name=payload["last_name"].strip(),
        email=email,
        phone=(payload.get("phone") or "").strip() or None,
        department=(payload.get("department") or "").strip() or None,
        job_title=(payload.get("job_title") or "").strip() or None,
        role=(payload.get("role") or "employee").strip(),
        hire_date=parse_date(payload.get("hire_date")),
        is_active=True,
        invite_status="pending",
        created_at=now,
        updated_at=now,
    )
    # A concurrent invite for the same address trips the unique constraint.
    try:
        with s.begin_nested():
            s.add(employee)
            s.flush()
    except IntegrityError:
        raise ApiError("An employee with this email already exists in your organization", 409)

    record_event(
        s,
        actor=user,
        action="employee.create",
        entity_type="Employee",
        entity_id=str(employee.id),
        metadata={"name": employee.full_name, "email": employee.email, "role": employee.role},
    )

    if org.settings_value.get("auto_assign_training"):
        from app.safework.modules.training.service import assign_training

        assign_training(s, org, [employee.id], None, user, quiet=True)
    return employee


def update_employee(s: "Session", org: "Organization", employee: "Employee", payload: dict, user: User) -> "Employee":
    changes: dict[str, dict] = {}
    for field in EDITABLE_FIELDS:
        if field not in payload:
            continue
        raw = payload[field]
        if field == "hire_date":
            new = parse_date(raw)
        elif field == "is_active":
            new = bool(raw)
            if new != employee.is_active:
                changes[field] = {"old": employee.is_active, "new": new}
                _set_active(s, employee, new, utcnow())
            continue
        elif field == "email":
            new = (raw or "").strip().lower()
            if new != employee.email and _email_taken(s, org, new, exclude_id=employee.id):
                raise ApiError("An employee with this email already exists in your organization", 409)
        elif field in ("first_name", "last_name", "role"):
            new = (raw or "").strip()
        else:
            new = (raw or "").strip() or None
        old = getattr(employee, field)
        if new != old:
            changes[field] = {"old": iso(old) if field == "hire_date" else old, "new": iso(new) if field == "hire_date" else new}
            setattr(employee, field, new)

    if "role" in changes and employee.user_id:
        linked = s.get(User, employee.user_id)
        if linked:
            set_builtin_role(s, linked, role_key_for_employee_role(employee.role))

    employee.updated_at = utcnow()
    record_event(
        s,
        actor=user,
        action="employee.update",
        entity_type="Employee",
        entity_id=str(employee.id),
        metadata={"updated_fields": sorted(changes), "changes": changes},
    )
    return employee


def _set_active(s: "Session", employee: "Employee", active: bool, now) -> None:
    """Apply an activation change to the employee and its portal account.

    Deactivation also voids any outstanding invite link so it cannot re-enable the account.
    """
    employee.is_active = active
    employee.termination_date = None if active else now
    employee.updated_at = now
    linked = s.get(User, employee.user_id) if employee.user_id else None
    if linked is None:
        return
    linked.is_active = active
    if not active:
        linked.invite_token_hash = None
        linked.invite_expires_at = None


def deactivate_employee(s: "Session", employee: "Employee", user: User) -> "Employee":
    _set_active(s, employee, False, utcnow())
    record_event(
        s,
        actor=user,
        action="employee.deactivate",
        entity_type="Employee",
        entity_id=str(employee.id),
        metadata={"name": employee.full_name, "email": employee.email},
    )
    return employee


def _invite_html(org: "Organization", employee: "Employee", link: str) -> str:
    return f"""
    <div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">
      <h2 style="color: #1a1a1a;">You're invited to the {org.display_name} safety portal</h2>
      <p>Hi {employee.first_name},</p>
      <p><strong>{org.display_name}</strong> uses SafeWorkCA to manage its SB 553 Workplace Violence Prevention Program.</p>
      <p>Set your password to access your required training and the company's WVPP:</p>
      <p><a href="{link}">{link}</a></p>
      <p style="color: #666; font-size: 14px;">This link expires in 7 days.</p>
    </div>
    """


def send_invite(s: "Session", org: "Organization", employee: "Employee", actor: User) -> bool:
    """
    Provision (or reuse) the employee's portal account and e-mail a one-time invite link.
    Returns False and leaves invite_status unchanged if the account or e-mail cannot be set up.
    """
    account = s.get(User, employee.user_id) if employee.user_id else None
    if account is None:
        account = s.query(User).filter(User.email == employee.email).one_or_none()
        if account is not None and account.organization_id not in (None, org.id):
            logger.warning("Invite skipped: %s already belongs to another organization", employee.email)
            return False
    if account is None:
        account = User(
            email=employee.email,
            password_hash=generate_password_hash(new_token()),
            first_name=employee.first_name,
            last_name=employee.last_name,
            is_active=True,
        )
        s.add(account)

    token = new_token()
    now = utcnow()
    account.organization_id = org.id
    account.invite_token_hash = sha256_hex(token)
    account.invite_expires_at = now + INVITE_TTL
    s.flush()
    employee.user_id = account.id
    role_key = role_key_for_employee_role(employee.role)
    if account.id != actor.id:
        set_builtin_role(s, account, role_key)

    link = f"{current_app.config.get('APP_URL', '')}/accept-invite?token={token}"
    try:
        mailer.send_email(
            current_app.config,
            to=employee.email,
            subject=f"You're invited to {org.display_name} on SafeWorkCA",
            html=_invite_html(org, employee, link),
        )
    except mailer.MailerError as e:
        logger.error("Invite e-mail failed for employee=%s: %s", employee.id, e)
        return False

    employee.invite_status = "sent"
    employee.invite_sent_at = now
    record_event(
        s,
        actor=actor,
        action="employee.invite",
        entity_type="Employee",
        entity_id=str(employee.id),
        metadata={"email": employee.email, "role": role_key},
    )
    return True


def serialize_employee(employee: "Employee") -> dict:
    return {
        "id": employee.id,
        "organization_id": employee.organization_id,
        "user_id": employee.user_id,
        "first_name": employee.first_name,
        "last_name": employee.last_name,
        "full_name": employee.full_name,
        "email": employee.email,
        "phone": employee.phone,
        "department": employee.department,
        "job_title": employee.job_title,
        "role": employee.role,
        "hire_date": iso(employee.hire_date),
        "termination_date": iso(employee.termination_date),
        "is_active": employee.is_active,
        "invite_status": employee.invite_status,
        "invite_sent_at": iso(employee.invite_sent_at),
        "invite_accepted_at": iso(employee.invite_accepted_at),
        "last_portal_login": iso(employee.last_portal_login),
        "training": {
            "initial_training_completed_at": iso(employee.initial_training_completed_at),
            "last_annual_training_completed_at": iso(employee.last_annual_training_completed_at),
            "next_training_due_date": iso(employee.next_training_due_date),
            "started_at": iso(employee.training_started_at),
            "completed_at": iso(employee.training_completed_at),
            "current_module_order": employee.current_module_order,
        },
        "has_completed_qa": employee.has_completed_qa,
        "wvpp_acknowledged_at": iso(employee.wvpp_acknowledged_at),
        "wvpp_acknowledged_version": employee.wvpp_acknowledged_version,
        "created_at": iso(employee.created_at),
        "updated_at": iso(employee.updated_at),
    }


def employee_for_user(s: "Session", user: User) -> "Employee":
    """The signed-in user's own employee record (portal endpoints)."""
    from app.safework.modules.employees.models import Employee

    employee = (
        s.query(Employee)
        .filter(Employee.user_id == user.id, Employee.organization_id == user.organization_id)
        .one_or_none()
    )
    if not employee or not employee.is_active:
        raise ApiError("Employee not found", 404)
    return employee
