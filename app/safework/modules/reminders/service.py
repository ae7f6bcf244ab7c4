from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from app.safework import mailer
from app.safework.modules.reminders.templates import render
from app.safework.utils import round_half_up, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.modules.organizations.models import Organization

logger = logging.getLogger(__name__)

ANNUAL_REVIEW_REMINDER_DAYS = (30, 7)
OVERDUE_REMINDER_DAYS = (0, 7)
INCIDENT_FOLLOWUP_DAYS = 7


def _as_datetime(value: datetime | date) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime(value.year, value.month, value.day)


def _days_between(a: datetime | date, b: datetime | date) -> int:
    a, b = _as_datetime(a), _as_datetime(b)
    return round_half_up((a - b).total_seconds() / 86400)


def _fmt(value: datetime | date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


class ReminderRun:
    """Accumulates send results; mail failures are counted, never raised."""

    def __init__(self, config: dict) -> None:
        self.config = config
        self.sent = 0
        self.errors = 0
        self.details: list[dict[str, Any]] = []

    def send(self, reminder_type: str, to: str, data: dict[str, Any], **detail: Any) -> bool:
        subject, html = render(reminder_type, data)
        try:
            mailer.send_email(self.config, to=to, subject=subject, html=html)
        except mailer.MailerError as e:
            logger.error("Reminder %s to %s failed: %s", reminder_type, to, e)
            self.errors += 1
            self.details.append({"type": reminder_type, "to": to, "error": str(e)})
            return False
        self.sent += 1
        self.details.append({"type": reminder_type, "to": to, **detail})
        return True


def _training_reminders(s: "Session", org: "Organization", run: ReminderRun, now: datetime) -> None:
    from app.safework.modules.employees.models import Employee

    reminder_days = [int(d) for d in org.settings_value.get("training_reminder_days") or []]
    employees = (
        s.query(Employee)
        .filter(
            Employee.organization_id == org.id,
            Employee.is_active.is_(True),
            Employee.next_training_due_date.isnot(None),
        )
        .all()
    )
    for emp in employees:
        days = _days_between(emp.next_training_due_date, now)
        data = {
            "employee_name": emp.full_name,
            "organization_name": org.display_name,
            "due_date": _fmt(emp.next_training_due_date),
        }
        if days > 0 and days in reminder_days:
            run.send("training_due", emp.email, {**data, "days_until_due": days}, days_until_due=days)
        elif days <= 0 and -days in OVERDUE_REMINDER_DAYS:
            overdue = -days or 1
            run.send("training_overdue", emp.email, {**data, "days_overdue": overdue}, days_overdue=-days)
            if org.email:
                run.send(
                    "training_overdue_admin",
                    org.email,
                    {**data, "days_overdue": overdue},
                    days_overdue=-days,
                    employee_id=emp.id,
                )


def _annual_review_reminder(org: "Organization", run: ReminderRun, now: datetime) -> None:
    if not org.next_plan_review_due_date or not org.email:
        return
    days = _days_between(org.next_plan_review_due_date, now)
    if days > 0 and days in ANNUAL_REVIEW_REMINDER_DAYS:
        run.send(
            "annual_review",
            org.email,
            {
                "organization_name": org.display_name,
                "review_due_date": _fmt(org.next_plan_review_due_date),
                "days_until_due": days,
            },
            days_until_due=days,
        )


def _incident_followups(s: "Session", org: "Organization", run: ReminderRun, now: datetime) -> None:
    from app.safework.modules.incidents.models import Incident

    if not org.email:
        return
    incidents = (
        s.query(Incident)
        .filter(Incident.organization_id == org.id, Incident.investigation_status.in_(("pending", "in_progress")))
        .all()
    )
    for incident in incidents:
        days = _days_between(now, incident.incident_date)
        if days > 0 and days % INCIDENT_FOLLOWUP_DAYS == 0:
            run.send(
                "incident_followup",
                org.email,
                {
                    "organization_name": org.display_name,
                    "incident_date": _fmt(incident.incident_date),
                    "days_since_incident": days,
                    "location_description": incident.location_description or "Unknown location",
                },
                days_since_incident=days,
                incident_id=incident.id,
            )


def run_reminders(s: "Session", config: dict, now: datetime | None = None) -> dict[str, Any]:
    """
    Daily reminder sweep across every organization. Sends mail only; nothing is written to the database.
    """
    from app.safework.modules.organizations.models import Organization

    now = now or utcnow()
    run = ReminderRun(config)
    for org in s.query(Organization).order_by(Organization.id.asc()).all():
        _training_reminders(s, org, run, now)
        _annual_review_reminder(org, run, now)
        _incident_followups(s, org, run, now)

    logger.info("Reminder run complete: sent=%s errors=%s", run.sent, run.errors)
    return {
        "ok": True,
        "timestamp": now.isoformat(),
        "sent": run.sent,
        "errors": run.errors,
        "details": run.details,
    }
