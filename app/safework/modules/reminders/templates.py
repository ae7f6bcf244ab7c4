"""
Reminder e-mail templates. Each type maps to a subject builder and an HTML builder taking the same data dict.
"""
from __future__ import annotations

from typing import Any, Callable

from markupsafe import escape

_FOOTER = '<p style="color: #666; font-size: 14px;">SafeWorkCA</p>'
_URGENT = '<p style="color: #dc2626; font-weight: bold;">{}</p>'


def _wrap(body: str) -> str:
    return f'<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">{body}{_FOOTER}</div>'


def _days(n: int) -> str:
    return f"{n} day{'' if n == 1 else 's'}"


def _training_due(d: dict[str, Any]) -> str:
    days = d["days_until_due"]
    when = "Tomorrow" if days <= 1 else f"in {days} days"
    urgent = _URGENT.format("Please complete your training as soon as possible to remain compliant.") if days <= 7 else ""
    return _wrap(
        f'<h2 style="color: #1a1a1a;">Training Due {when}</h2>'
        f"<p>Hi {escape(d['employee_name'])},</p>"
        f"<p>Your annual SB 553 workplace violence prevention training for <strong>{escape(d['organization_name'])}</strong> "
        f"is due on <strong>{d['due_date']}</strong>.</p>"
        f"{urgent}"
        "<p>Log in to your employee portal to complete the required training modules.</p>"
    )


def _training_overdue(d: dict[str, Any]) -> str:
    return _wrap(
        '<h2 style="color: #dc2626;">Training Overdue</h2>'
        f"<p>Hi {escape(d['employee_name'])},</p>"
        f"<p>Your annual SB 553 training for <strong>{escape(d['organization_name'])}</strong> was due on "
        f"<strong>{d['due_date']}</strong> and is now <strong>{_days(d['days_overdue'])} overdue</strong>.</p>"
        + _URGENT.format("Please complete your training immediately to restore compliance.")
    )


def _training_overdue_admin(d: dict[str, Any]) -> str:
    return _wrap(
        '<h2 style="color: #dc2626;">Employee Training Overdue</h2>'
        f"<p><strong>{escape(d['employee_name'])}</strong> has overdue SB 553 training.</p>"
        f"<p>Due date: <strong>{d['due_date']}</strong> ({_days(d['days_overdue'])} overdue)</p>"
        "<p>Please follow up with this employee to ensure they complete training. "
        "Overdue training affects your organization's compliance score.</p>"
    )


def _annual_review(d: dict[str, Any]) -> str:
    days = d["days_until_due"]
    soon = " Soon" if days <= 7 else ""
    urgent = _URGENT.format("This review is due soon. Please schedule time to complete it.") if days <= 7 else ""
    return _wrap(
        f'<h2 style="color: #1a1a1a;">Annual WVPP Review Due{soon}</h2>'
        f"<p>Your Workplace Violence Prevention Plan for <strong>{escape(d['organization_name'])}</strong> requires its "
        f"annual review by <strong>{d['review_due_date']}</strong> ({_days(days)} remaining).</p>"
        "<p>California Labor Code Section 6401.9 requires annual review and update of your WVPP. "
        "Log in to SafeWorkCA to review and republish your plan.</p>"
        f"{urgent}"
    )


def _incident_followup(d: dict[str, Any]) -> str:
    return _wrap(
        '<h2 style="color: #f59e0b;">Incident Investigation Follow-Up</h2>'
        f"<p>An incident reported on <strong>{d['incident_date']}</strong> at "
        f"<strong>{escape(d['location_description'])}</strong> for <strong>{escape(d['organization_name'])}</strong> "
        f"has an open investigation that is {_days(d['days_since_incident'])} old.</p>"
        "<p>Please update the investigation status or complete the investigation to maintain compliance.</p>"
    )


TEMPLATES: dict[str, tuple[Callable[[dict], str], Callable[[dict], str]]] = {
    "training_due": (
        lambda d: "Action Required: Training Due Tomorrow"
        if d["days_until_due"] <= 1
        else f"Training Due in {d['days_until_due']} Days",
        _training_due,
    ),
    "training_overdue": (lambda d: "OVERDUE: Complete Your SB 553 Training", _training_overdue),
    "training_overdue_admin": (lambda d: f"Employee Training Overdue: {d['employee_name']}", _training_overdue_admin),
    "annual_review": (
        lambda d: "Action Required: Annual WVPP Review Due Soon"
        if d["days_until_due"] <= 7
        else "Reminder: Annual WVPP Review Approaching",
        _annual_review,
    ),
    "incident_followup": (lambda d: "Open Incident Investigation Requires Follow-Up", _incident_followup),
}


def render(reminder_type: str, data: dict[str, Any]) -> tuple[str, str]:
    """Returns (subject, html). Raises KeyError for an unknown type."""
    subject, html = TEMPLATES[reminder_type]
    return subject(data), html(data)
