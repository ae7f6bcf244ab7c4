from __future__ import annotations

import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from flask import Blueprint, current_app, g, jsonify, request, session
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from app.safework.audit import record_event
from app.safework.db import db_session
from app.safework.errors import ApiError, json_body
from app.safework.models import User
from app.safework.security import ensure_csrf_token, sha256_hex
from app.safework.utils import utcnow

if TYPE_CHECKING:
    from app.safework.modules.organizations.models import Organization

bp = Blueprint("auth", __name__)
_login_attempts: dict[str, list[datetime]] = defaultdict(list)
_LOGIN_RATE_LIMIT = 5
_LOGIN_RATE_WINDOW = 300  # seconds
MIN_PASSWORD_LENGTH = 8


def _check_rate_limit(ip: str) -> bool:
    now = utcnow()
    cutoff = now - timedelta(seconds=_LOGIN_RATE_WINDOW)
    _login_attempts[ip] = [t for t in _login_attempts[ip] if t > cutoff]
    return len(_login_attempts[ip]) >= _LOGIN_RATE_LIMIT


def _record_attempt(ip: str) -> None:
    _login_attempts[ip].append(utcnow())


def load_current_user() -> None:
    """
    Loads g.current_user from the signed session cookie.
    Also assigns a per-request request_id (for audit/log correlation).
    """
    if not getattr(g, "request_id", None):
        g.request_id = uuid.uuid4().hex
    if request.path.startswith(("/health", "/healthz")):
        g.current_user = None
        return

    user_id = session.get("user_id")
    if not user_id:
        g.current_user = None
        return

    s = db_session()
    user = s.get(User, int(user_id))
    if not user or not user.is_active:
        session.pop("user_id", None)
        g.current_user = None
        return
    g.current_user = user


def current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise ApiError("Unauthorized", 401)
    return u


def current_organization(s: Session) -> "Organization":
    """The signed-in user's organization, or 404."""
    from app.safework.modules.organizations.models import Organization

    u = current_user()
    org = s.get(Organization, u.organization_id) if u.organization_id else None
    if not org:
        raise ApiError("Organization not found", 404)
    return org


def _me_payload(s: Session, user: User) -> dict:
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.organizations.models import Organization

    org = s.get(Organization, user.organization_id) if user.organization_id else None
    employee = s.query(Employee).filter(Employee.user_id == user.id).one_or_none()
    perms = sorted({p.key for r in user.roles for p in r.permissions})
    return {
        "user": {
            "id": user.id,
            "email": user.email,
            "first_name": user.first_name,
            "last_name": user.last_name,
            "roles": sorted(r.key for r in user.roles),
            "permissions": perms,
        },
        "organization": {"id": org.id, "name": org.name, "plan": org.plan} if org else None,
        "employee_id": employee.id if employee else None,
        "needs_onboarding": org is None,
    }


def _login_session(user: User) -> None:
    session.clear()
    session["user_id"] = user.id
    session.permanent = True
    ensure_csrf_token()


@bp.post("/register")
def register():
    payload = json_body()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    if not email or "@" not in email:
        raise ApiError("A valid email is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ApiError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    s = db_session()
    if s.query(User).filter(User.email == email).one_or_none():
        raise ApiError("An account with this email already exists", 409)

    user = User(
        email=email,
        password_hash=generate_password_hash(password),
        first_name=(payload.get("first_name") or "").strip() or None,
        last_name=(payload.get("last_name") or "").strip() or None,
        is_active=True,
    )
    s.add(user)
    s.flush()
    record_event(s, actor=user, action="auth.register", entity_type="User", entity_id=str(user.id))
    s.commit()
    _login_session(user)
    return jsonify(_me_payload(s, user)), 201


@bp.post("/login")
def login_post():
    payload = json_body()
    email = (payload.get("email") or "").strip().lower()
    password = payload.get("password") or ""
    ip = request.remote_addr or "unknown"

    if _check_rate_limit(ip):
        raise ApiError("Too many login attempts. Please wait 5 minutes.", 429)

    _record_attempt(ip)

    s = db_session()
    user = s.query(User).filter(User.email == email).one_or_none()
    if not user or not user.is_active or not check_password_hash(user.password_hash, password):
        record_event(
            s,
            actor=None,
            action="auth.login_failed",
            entity_type="User",
            entity_id=email,
            reason="Invalid credentials",
            metadata={"email": email},
        )
        s.commit()
        current_app.logger.info("Login failed (email=%s request_id=%s)", email, g.request_id)
        raise ApiError("Invalid credentials", 401)

    from app.safework.modules.employees.models import Employee

    now = utcnow()
    user.last_login_at = now
    employee = s.query(Employee).filter(Employee.user_id == user.id).one_or_none()
    if employee:
        employee.last_portal_login = now
    _login_attempts[ip].clear()
    record_event(s, actor=user, action="auth.login", entity_type="User", entity_id=str(user.id))
    s.commit()
    _login_session(user)
    return jsonify(_me_payload(s, user))


@bp.post("/logout")
def logout():
    s = db_session()
    user = getattr(g, "current_user", None)
    if user:
        record_event(s, actor=user, action="auth.logout", entity_type="User", entity_id=str(user.id))
        s.commit()
    session.clear()
    return jsonify({"success": True})


@bp.get("/me")
def me():
    user = current_user()
    return jsonify(_me_payload(db_session(), user))


@bp.get("/csrf")
def csrf():
    return jsonify({"csrf_token": ensure_csrf_token()})


@bp.post("/accept-invite")
def accept_invite():
    from app.safework.modules.employees.models import Employee

    payload = json_body()
    token = (payload.get("token") or "").strip()
    password = payload.get("password") or ""
    if not token:
        raise ApiError("Invite token is required")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ApiError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    s = db_session()
    user = s.query(User).filter(User.invite_token_hash == sha256_hex(token)).one_or_none()
    if not user:
        raise ApiError("Invalid or already used invite", 404)

    employee = s.query(Employee).filter(Employee.user_id == user.id).one_or_none()
    if employee is not None and not employee.is_active:
        raise ApiError("Invalid or already used invite", 404)
    now = utcnow()
    if user.invite_expires_at and user.invite_expires_at < now:
        if employee:
            employee.invite_status = "expired"
            s.commit()
        raise ApiError("Invite has expired. Ask your administrator to resend it.", 400)

    user.password_hash = generate_password_hash(password)
    user.invite_token_hash = None
    user.invite_expires_at = None
    user.is_active = True
    user.last_login_at = now
    if employee:
        employee.invite_status = "accepted"
        employee.invite_accepted_at = now
        employee.last_portal_login = now
    record_event(
        s,
        actor=user,
        action="employee.invite_accepted",
        entity_type="Employee",
        entity_id=str(employee.id) if employee else None,
    )
    s.commit()
    _login_session(user)
    return jsonify(_me_payload(s, user))
