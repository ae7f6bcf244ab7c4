from __future__ import annotations

import calendar
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func

from app.safework.audit import serialize_event
from app.safework.models import AuditEvent
from app.safework.utils import days_until, iso, percent, round_half_up, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.modules.organizations.models import Organization
    from app.safework.modules.plans.models import Plan

OPEN_INVESTIGATION_STATUSES = ("pending", "in_progress")
DEADLINE_WARNING_DAYS = 30
REVIEW_GRACE_MONTHS = 18


def _months_before(value: datetime, months: int) -> datetime:
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    day = min(value.day, calendar.monthrange(year, month + 1)[1])
    return value.replace(year=year, month=month + 1, day=day)


def _counts(s: "Session", org: "Organization") -> dict[str, Any]:
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.incidents.models import Incident
    from app.safework.modules.plans.models import Plan

    now = utcnow()
    employees = s.query(Employee).filter(Employee.organization_id == org.id)
    active = employees.filter(Employee.is_active.is_(True))
    incidents = s.query(Incident).filter(Incident.organization_id == org.id)
    return {
        "total_plans": s.query(func.count(Plan.id)).filter(Plan.organization_id == org.id).scalar() or 0,
        "total_incidents": incidents.count(),
        "open_incidents": incidents.filter(Incident.investigation_status.in_(OPEN_INVESTIGATION_STATUSES)).count(),
        "completed_investigations": incidents.filter(Incident.investigation_status == "completed").count(),
        "total_employees": employees.count(),
        "active_employees": active.count(),
        "trained_employees": active.filter(Employee.last_annual_training_completed_at.isnot(None)).count(),
        "overdue_training": active.filter(
            Employee.next_training_due_date.isnot(None), Employee.next_training_due_date < now
        ).count(),
    }


def compliance_scores(org: "Organization", active_plan: "Plan | None", counts: dict[str, Any], now: datetime | None = None) -> dict[str, int]:
    """
    Four equally weighted 0-100 scores plus their rounded mean as ``overall``.
    """
    now = now or utcnow()
    scores = {"wvpp": 0, "training": 0, "annual_review": 0, "incident_log": 0}

    if active_plan:
        scores["wvpp"] = 100

    if counts["active_employees"] > 0:
        scores["training"] = percent(counts["trained_employees"], counts["active_employees"])
    else:
        # Nobody to train yet
        scores["training"] = 100 if active_plan else 0

    if org.next_plan_review_due_date:
        if org.next_plan_review_due_date > now:
            scores["annual_review"] = 100
        elif org.last_plan_review_date and org.last_plan_review_date > _months_before(now, REVIEW_GRACE_MONTHS):
            scores["annual_review"] = 50
    elif active_plan:
        scores["annual_review"] = 50

    if counts["total_incidents"] == 0:
        scores["incident_log"] = 100
    else:
        investigated = counts["total_incidents"] - counts["open_incidents"]
        scores["incident_log"] = percent(investigated, counts["total_incidents"])

    scores["overall"] = round_half_up(sum(scores.values()) / 4)
    return scores


def deadlines(org: "Organization", now: datetime | None = None) -> list[dict[str, Any]]:
    now = now or utcnow()
    out: list[dict[str, Any]] = []
    for key, label, due in (
        ("annual_review", "Annual Plan Review", org.next_plan_review_due_date),
        ("training_due", "Training Due", org.next_training_due_date),
    ):
        if not due:
            continue
        days = days_until(due, now)
        out.append({"type": key, "label": label, "date": due, "days_until": days, "overdue": days < 0})
    out.sort(key=lambda d: d["date"])
    return out


def _plural(n: int, word: str, suffix: str = "s") -> str:
    return f"{n} {word}{suffix if n != 1 else ''}"


def alerts(active_plan: "Plan | None", scores: dict, counts: dict, new_anonymous: int, upcoming: list[dict]) -> list[dict]:
    out: list[dict] = []
    if not active_plan:
        out.append({"level": "critical", "message": "No active WVPP. Create and publish a plan to comply with SB 553."})
    elif scores["annual_review"] == 0:
        out.append({"level": "critical", "message": "Annual plan review is overdue."})
    if counts["open_incidents"]:
        out.append({"level": "warning", "message": f"{_plural(counts['open_incidents'], 'incident')} pending investigation."})
    untrained = counts["active_employees"] - counts["trained_employees"]
    if counts["active_employees"] and untrained > 0:
        out.append({"level": "warning", "message": f"{_plural(untrained, 'employee')} have not completed training."})
    if new_anonymous:
        out.append(
            {"level": "critical", "message": f"{_plural(new_anonymous, 'new anonymous report')} require attention."}
        )
    for d in upcoming:
        if d["overdue"]:
            out.append({"level": "critical", "message": f"{d['label']} is overdue."})
        elif d["days_until"] <= DEADLINE_WARNING_DAYS:
            out.append({"level": "info", "message": f"{d['label']} due in {_plural(d['days_until'], 'day')}."})
    return out


def compliance_report_stats(s: "Session", org: "Organization") -> tuple[dict[str, int], dict[str, Any]]:
    """Scores and statistics for the compliance report PDF."""
    from app.safework.modules.incidents.models import Incident
    from app.safework.modules.plans.service import active_plan as get_active_plan

    counts = _counts(s, org)
    scores = compliance_scores(org, get_active_plan(s, org), counts)
    recent = (
        s.query(Incident)
        .filter(Incident.organization_id == org.id)
        .order_by(Incident.incident_date.desc(), Incident.id.desc())
        .limit(5)
        .all()
    )
    stats = {
        "total_employees": counts["active_employees"],
        "employees_trained": counts["trained_employees"],
        "training_completion_rate": percent(counts["trained_employees"], counts["active_employees"]),
        "overdue_training": counts["overdue_training"],
        "total_incidents": counts["total_incidents"],
        "open_investigations": counts["open_incidents"],
        "completed_investigations": counts["completed_investigations"],
        "recent_incidents": recent,
        "deadlines": deadlines(org),
    }
    return scores, stats


def dashboard(s: "Session", org: "Organization") -> dict[str, Any]:
    """
    Organization overview. Refreshes org.compliance_score; the caller commits.
    """
    from app.safework.modules.anonymous.models import AnonymousReport
    from app.safework.modules.plans.service import active_plan as get_active_plan
    from app.safework.modules.training.models import TrainingModule, TrainingProgress

    now = utcnow()
    plan = get_active_plan(s, org)
    counts = _counts(s, org)
    scores = compliance_scores(org, plan, counts, now)
    upcoming = deadlines(org, now)

    anonymous = dict(
        s.query(AnonymousReport.status, func.count(AnonymousReport.id))
        .filter(AnonymousReport.organization_id == org.id)
        .group_by(AnonymousReport.status)
        .all()
    )
    progress = dict(
        s.query(TrainingProgress.status, func.count(TrainingProgress.id))
        .filter(TrainingProgress.organization_id == org.id)
        .group_by(TrainingProgress.status)
        .all()
    )
    new_anonymous = anonymous.get("new", 0)

    recent = (
        s.query(AuditEvent)
        .filter(AuditEvent.organization_id == org.id)
        .order_by(AuditEvent.created_at.desc(), AuditEvent.id.desc())
        .limit(10)
        .all()
    )

    org.compliance_score = scores["overall"]

    return {
        "organization": {"id": org.id, "name": org.name, "industry": org.industry, "plan": org.plan},
        "compliance": {"overall": scores["overall"], "scores": {k: v for k, v in scores.items() if k != "overall"}},
        "stats": {
            "active_plan": plan is not None,
            "active_plan_version": plan.version if plan else None,
            "total_plans": counts["total_plans"],
            "total_incidents": counts["total_incidents"],
            "open_incidents": counts["open_incidents"],
            "total_employees": counts["total_employees"],
            "active_employees": counts["active_employees"],
            "trained_employees": counts["trained_employees"],
            "total_modules": s.query(func.count(TrainingModule.id)).filter(TrainingModule.is_active.is_(True)).scalar() or 0,
            "completed_module_progress": progress.get("completed", 0),
            "in_progress_module_progress": progress.get("in_progress", 0),
            "total_anonymous_reports": sum(anonymous.values()),
            "new_anonymous_reports": new_anonymous,
            "active_anonymous_reports": anonymous.get("under_review", 0) + anonymous.get("investigating", 0),
        },
        "alerts": alerts(plan, scores, counts, new_anonymous, upcoming),
        "deadlines": [{**d, "date": iso(d["date"])} for d in upcoming],
        "recent_activity": [serialize_event(ev) for ev in recent],
    }
