from collections.abc import Callable
from functools import wraps
from typing import Any

from flask import current_app, g
from sqlalchemy.orm import Session

from app.safework.errors import ApiError
from app.safework.models import Permission, Role, User

# (key, display name)
PERMISSIONS: list[tuple[str, str]] = [
    ("org.view", "Organization: view"),
    ("org.edit", "Organization: edit settings"),
    ("employees.view", "Employees: view"),
    ("employees.edit", "Employees: create/edit/deactivate"),
    ("incidents.view", "Incident log: view"),
    ("incidents.edit", "Incident log: create/edit"),
    ("plans.view", "WVPP: view"),
    ("plans.edit", "WVPP: create/edit"),
    ("plans.publish", "WVPP: publish"),
    ("training.view", "Training: view records and reports"),
    ("training.manage", "Training: assign and record"),
    ("training.take", "Training: take modules"),
    ("anonymous.view", "Anonymous reports: view"),
    ("anonymous.manage", "Anonymous reports: manage"),
    ("documents.view", "Documents: view/download"),
    ("documents.generate", "Documents: generate/upload"),
    ("billing.manage", "Billing: manage subscription"),
    ("dashboard.view", "Dashboard: view"),
    ("portal.view", "Employee portal: view"),
]

ROLES: dict[str, tuple[str, list[str]]] = {
    "org_admin": ("Organization Administrator", [key for key, _ in PERMISSIONS]),
    "employee": ("Employee", ["portal.view", "training.take"]),
}

# Employee.role values that administer the organization's program
ADMIN_EMPLOYEE_ROLES = ("owner", "manager", "wvpp_administrator")


def user_has_permission(user: User | None, permission_key: str) -> bool:
    if not user or not user.is_active:
        return False
    for role in user.roles:
        for perm in role.permissions:
            if perm.key == permission_key:
                return True
    return False


def require_permission(permission_key: str) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(fn)
        def wrapped(*args: Any, **kwargs: Any):
            user: User | None = getattr(g, "current_user", None)
            if not user or not user.is_active:
                raise ApiError("Unauthorized", 401)
            if not user_has_permission(user, permission_key):
                g.missing_permission = permission_key
                current_app.logger.warning(
                    "Forbidden: missing_permission=%s request_id=%s", permission_key, getattr(g, "request_id", None)
                )
                raise ApiError("Forbidden", 403)
            return fn(*args, **kwargs)

        return wrapped

    return decorator


def ensure_permission(s: Session, key: str, name: str) -> Permission:
    p = s.query(Permission).filter(Permission.key == key).one_or_none()
    if not p:
        p = Permission(key=key, name=name)
        s.add(p)
    return p


def ensure_role(s: Session, role_key: str) -> Role:
    """Get or create a built-in role with its permission set (idempotent)."""
    display, perm_keys = ROLES[role_key]
    names = dict(PERMISSIONS)
    role = s.query(Role).filter(Role.key == role_key).one_or_none()
    if not role:
        role = Role(key=role_key, name=display)
        s.add(role)
    for key in perm_keys:
        perm = ensure_permission(s, key, names[key])
        if perm not in role.permissions:
            role.permissions.append(perm)
    s.flush()
    return role


def grant_role(s: Session, user: User, role_key: str) -> None:
    role = ensure_role(s, role_key)
    if role not in user.roles:
        user.roles.append(role)


def role_key_for_employee_role(employee_role: str | None) -> str:
    return "org_admin" if employee_role in ADMIN_EMPLOYEE_ROLES else "employee"


def set_builtin_role(s: Session, user: User, role_key: str) -> None:
    """Grant role_key and drop the other built-in roles (an account holds exactly one)."""
    user.roles = [r for r in user.roles if r.key not in ROLES or r.key == role_key]
    grant_role(s, user, role_key)
