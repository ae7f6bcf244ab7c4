from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Iterable

from app.safework.audit import record_event
from app.safework.errors import ApiError
from app.safework.utils import add_years, iso, parse_datetime, percent, round_half_up, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.models import User
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.organizations.models import Organization
    from app.safework.modules.training.models import (
        TrainingModule,
        TrainingProgress,
        TrainingQuestion,
        TrainingRecord,
    )

logger = logging.getLogger(__name__)

TRAINING_TYPES = ("initial", "annual", "new_hazard", "plan_update")
QUESTION_TYPES = ("multiple_choice", "true_false", "select_all")
VIDEO_COMPLETE_THRESHOLD = 90

FULL_TRAINING_KEY = "sb553-full-training"
FULL_TRAINING_NAME = "SB 553 Workplace Violence Prevention Training"
LMS_TRAINER = "SafeWorkCA LMS"


# ---------------------------------------------------------------------------
# Catalogue
# ---------------------------------------------------------------------------


def list_modules(s: "Session") -> list["TrainingModule"]:
    from app.safework.modules.training.models import TrainingModule

    return (
        s.query(TrainingModule)
        .filter(TrainingModule.is_active.is_(True))
        .order_by(TrainingModule.order.asc(), TrainingModule.id.asc())
        .all()
    )


def get_module(s: "Session", module_id: Any) -> "TrainingModule":
    from app.safework.modules.training.models import TrainingModule

    try:
        module = s.get(TrainingModule, int(module_id))
    except (TypeError, ValueError):
        module = None
    if not module or not module.is_active:
        raise ApiError("Module not found", 404)
    return module


def active_questions(module: "TrainingModule") -> list["TrainingQuestion"]:
    return [q for q in module.questions if q.is_active]


def serialize_module(module: "TrainingModule", *, include_questions: bool = False) -> dict:
    out = {
        "id": module.id,
        "module_key": module.module_key,
        "title": module.title,
        "description": module.description,
        "order": module.order,
        "type": module.type,
        "video_url": module.video_url,
        "video_duration_minutes": module.video_duration_minutes,
        "thumbnail_url": module.thumbnail_url,
        "category": module.category,
        "is_required": module.is_required,
        "has_quiz": module.has_quiz,
        "passing_score": module.passing_score,
        "max_attempts": module.max_attempts,
        "version": module.version,
        "total_completions": module.total_completions,
        "avg_quiz_score": module.avg_quiz_score,
    }
    if include_questions:
        out["transcript"] = module.transcript
        # correct answers and explanations are only revealed after grading
        out["questions"] = [
            {
                "id": q.id,
                "question_text": q.question_text,
                "question_type": q.question_type,
                "options": [{"id": o["id"], "text": o["text"]} for o in q.options or []],
                "order": q.order,
                "points": q.points,
            }
            for q in active_questions(module)
        ]
    return out


# ---------------------------------------------------------------------------
# Progress engine
# ---------------------------------------------------------------------------


def progress_map(s: "Session", org: "Organization", employee: "Employee") -> dict[int, "TrainingProgress"]:
    from app.safework.modules.training.models import TrainingProgress

    rows = (
        s.query(TrainingProgress)
        .filter(TrainingProgress.organization_id == org.id, TrainingProgress.employee_id == employee.id)
        .all()
    )
    return {p.module_id: p for p in rows}


def _status(progress: "TrainingProgress | None") -> str:
    return progress.status if progress else "not_started"


def unlocked_module_ids(modules: list["TrainingModule"], progress: dict[int, "TrainingProgress"]) -> set[int]:
    """First module is always open; each later one opens when its predecessor is completed."""
    unlocked: set[int] = set()
    previous_completed = True
    for module in modules:
        if previous_completed:
            unlocked.add(module.id)
        previous_completed = _status(progress.get(module.id)) == "completed"
    return unlocked


def module_percent(module: "TrainingModule", progress: "TrainingProgress | None") -> int:
    status = _status(progress)
    if status == "completed":
        return 100
    if status == "not_started" or progress is None:
        return 0
    if not module.has_quiz:
        return progress.video_progress
    video_part = 50 if progress.video_completed else progress.video_progress / 100 * 50
    quiz_part = 50 if progress.quiz_passed else 0
    return round_half_up(video_part + quiz_part)


def _ensure_unlocked(s: "Session", org: "Organization", employee: "Employee", module: "TrainingModule") -> dict:
    progress = progress_map(s, org, employee)
    if module.id not in unlocked_module_ids(list_modules(s), progress):
        raise ApiError("Module is locked", 403)
    return progress


def _get_or_create_progress(
    s: "Session",
    org: "Organization",
    employee: "Employee",
    module: "TrainingModule",
    existing: dict[int, "TrainingProgress"],
) -> "TrainingProgress":
    from app.safework.modules.training.models import TrainingProgress

    progress = existing.get(module.id)
    if progress:
        return progress
    now = utcnow()
    progress = TrainingProgress(
        organization_id=org.id,
        employee_id=employee.id,
        module_id=module.id,
        status="in_progress",
        assigned_at=now,
        created_at=now,
        updated_at=now,
    )
    s.add(progress)
    s.flush()
    if not employee.training_started_at:
        employee.training_started_at = now
        employee.updated_at = now
    return progress


def _maybe_complete(module: "TrainingModule", progress: "TrainingProgress", employee: "Employee") -> bool:
    """Mark the module completed once both gates are satisfied. Returns True on first completion."""
    if progress.status == "completed":
        return False
    video_ok = progress.video_completed or not module.has_video
    quiz_ok = progress.quiz_passed or not module.has_quiz
    if not (video_ok and quiz_ok):
        return False

    now = utcnow()
    progress.status = "completed"
    progress.completed_at = now
    progress.updated_at = now

    n = module.total_completions or 0
    module.avg_quiz_score = round(((module.avg_quiz_score or 0.0) * n + progress.best_score) / (n + 1), 2)
    module.total_completions = n + 1
    module.updated_at = now

    employee.current_module_order = max(employee.current_module_order or 1, module.order + 1)
    employee.updated_at = now
    return True


def _parse_number(value: Any, label: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ApiError(f"{label} must be a number")
    return float(value)


def record_video_progress(
    s: "Session",
    org: "Organization",
    employee: "Employee",
    module: "TrainingModule",
    payload: dict,
) -> "TrainingProgress":
    reported = _parse_number(payload.get("video_progress"), "video_progress")
    position = _parse_number(payload.get("last_watched_position"), "last_watched_position")

    existing = _ensure_unlocked(s, org, employee, module)
    progress = _get_or_create_progress(s, org, employee, module, existing)

    if reported is not None:
        clamped = round_half_up(min(max(reported, 0.0), 100.0))
        if clamped > progress.video_progress:
            progress.video_progress = clamped
    if position is not None:
        progress.last_watched_position = max(position, 0.0)

    now = utcnow()
    if progress.video_progress >= VIDEO_COMPLETE_THRESHOLD and not progress.video_completed:
        progress.video_completed = True
        progress.video_completed_at = now
    if progress.status == "not_started":
        progress.status = "in_progress"
    progress.updated_at = now
    _maybe_complete(module, progress, employee)
    return progress


def grade_answers(questions: Iterable["TrainingQuestion"], answers: list[dict]) -> dict:
    """
    Grade submitted answers against the module's active questions.

    Every active question counts toward the total, so skipped questions score zero.
    Unknown question ids are echoed back as incorrect and earn nothing.
    """
    by_id = {q.id: q for q in questions}
    total = sum(q.points for q in by_id.values())
    earned = 0
    correct_count = 0
    graded: list[dict] = []
    seen: set[int] = set()
    for ans in answers:
        raw_id = ans.get("question_id")
        selected = [str(o) for o in ans.get("selected_option_ids") or []]
        try:
            qid = int(raw_id)
        except (TypeError, ValueError):
            qid = None
        question = by_id.get(qid) if qid is not None and qid not in seen else None
        if question is None:
            graded.append({"question_id": raw_id, "selected_option_ids": selected, "is_correct": False})
            continue
        seen.add(question.id)
        correct = question.correct_option_ids
        if question.question_type == "select_all":
            is_correct = set(selected) == set(correct) and len(selected) == len(set(selected))
        else:
            is_correct = len(selected) == 1 and selected[0] in correct
        if is_correct:
            correct_count += 1
            earned += question.points
        graded.append({"question_id": question.id, "selected_option_ids": selected, "is_correct": is_correct})

    score = percent(earned, total)
    return {"answers": graded, "score": score, "correct_count": correct_count, "total_questions": len(by_id)}


def submit_quiz(
    s: "Session",
    org: "Organization",
    employee: "Employee",
    module: "TrainingModule",
    answers: Any,
    user: "User",
) -> dict:
    from app.safework.modules.training.models import QuizAttempt

    if not isinstance(answers, list):
        raise ApiError("module_id and answers array are required")
    for ans in answers:
        if not isinstance(ans, dict) or not isinstance(ans.get("selected_option_ids") or [], list):
            raise ApiError("Each answer needs a question_id and a selected_option_ids array")
    if not module.has_quiz:
        raise ApiError("This module has no quiz")

    existing = _ensure_unlocked(s, org, employee, module)
    progress = existing.get(module.id)
    if module.has_video and not (progress and progress.video_completed):
        raise ApiError("Complete the video before taking the quiz")
    progress = _get_or_create_progress(s, org, employee, module, existing)

    attempts_so_far = len(progress.attempts)
    if module.max_attempts and attempts_so_far >= module.max_attempts:
        raise ApiError("Maximum quiz attempts reached")

    questions = active_questions(module)
    result = grade_answers(questions, answers)
    score = result["score"]
    passed = score >= module.passing_score
    now = utcnow()

    attempt = QuizAttempt(
        attempt_number=attempts_so_far + 1,
        score=score,
        passed=passed,
        answers=result["answers"],
        completed_at=now,
    )
    progress.attempts.append(attempt)
    progress.best_score = max(progress.best_score or 0, score)
    if passed and not progress.quiz_passed:
        progress.quiz_passed = True
        progress.quiz_passed_at = now
    if progress.status == "not_started":
        progress.status = "in_progress"
    progress.updated_at = now
    _maybe_complete(module, progress, employee)
    s.flush()

    record_event(
        s,
        actor=user,
        action="training.quiz_submit",
        entity_type="TrainingProgress",
        entity_id=str(progress.id),
        metadata={
            "employee_id": employee.id,
            "module_id": module.id,
            "module_title": module.title,
            "attempt_number": attempt.attempt_number,
            "score": score,
            "passed": passed,
        },
    )

    by_id = {q.id: q for q in questions}
    return {
        "attempt_number": attempt.attempt_number,
        "score": score,
        "passed": passed,
        "passing_score": module.passing_score,
        "correct_count": result["correct_count"],
        "total_questions": result["total_questions"],
        "answers": [
            {
                **a,
                "correct_option_ids": by_id[a["question_id"]].correct_option_ids if a["question_id"] in by_id else [],
                "explanation": by_id[a["question_id"]].explanation if a["question_id"] in by_id else None,
            }
            for a in result["answers"]
        ],
        "best_score": progress.best_score,
        "module_completed": progress.status == "completed",
    }


def assign_training(
    s: "Session",
    org: "Organization",
    employee_ids: Any,
    due_date: Any,
    user: "User",
    *,
    quiet: bool = False,
) -> dict:
    """
    Create missing progress rows for each (active employee, active module) pair.
    With quiet=True an empty catalogue or employee list is a no-op instead of a 404.
    """
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.training.models import TrainingProgress

    if not isinstance(employee_ids, list) or not employee_ids:
        raise ApiError("employee_ids array is required")
    ids = []
    for raw in employee_ids:
        try:
            ids.append(int(raw))
        except (TypeError, ValueError):
            continue
    due = parse_datetime(due_date) if due_date else None

    employees = (
        s.query(Employee)
        .filter(Employee.id.in_(ids), Employee.organization_id == org.id, Employee.is_active.is_(True))
        .all()
        if ids
        else []
    )
    modules = list_modules(s)
    if not employees or not modules:
        if quiet:
            return {"assigned": 0, "employees": len(employees), "modules": len(modules), "due_date": iso(due)}
        raise ApiError("No valid employees found" if not employees else "No active training modules found", 404)

    existing = {
        (p.employee_id, p.module_id)
        for p in s.query(TrainingProgress.employee_id, TrainingProgress.module_id).filter(
            TrainingProgress.organization_id == org.id,
            TrainingProgress.employee_id.in_([e.id for e in employees]),
        )
    }
    now = utcnow()
    assigned = 0
    for emp in employees:
        for module in modules:
            if (emp.id, module.id) in existing:
                continue
            s.add(
                TrainingProgress(
                    organization_id=org.id,
                    employee_id=emp.id,
                    module_id=module.id,
                    status="not_started",
                    assigned_at=now,
                    due_date=due,
                    created_at=now,
                    updated_at=now,
                )
            )
            assigned += 1
    s.flush()

    record_event(
        s,
        actor=user,
        action="training.assign",
        entity_type="Organization",
        entity_id=str(org.id),
        metadata={
            "employee_count": len(employees),
            "module_count": len(modules),
            "assigned_count": assigned,
            "due_date": iso(due),
        },
    )
    return {"assigned": assigned, "employees": len(employees), "modules": len(modules), "due_date": iso(due)}


def complete_training(
    s: "Session",
    org: "Organization",
    employee: "Employee",
    acknowledgment: bool,
    user: "User",
) -> "TrainingRecord":
    from app.safework.modules.training.models import TrainingRecord

    modules = list_modules(s)
    progress = progress_map(s, org, employee)
    incomplete = [m for m in modules if m.is_required and _status(progress.get(m.id)) != "completed"]
    if incomplete:
        raise ApiError(
            "Not all required modules are completed",
            400,
            incomplete_modules=[{"id": m.id, "title": m.title, "order": m.order} for m in incomplete],
        )

    now = utcnow()
    training_type = "annual" if employee.initial_training_completed_at else "initial"
    scores = [progress[m.id].best_score for m in modules if m.has_quiz and m.id in progress]
    record = TrainingRecord(
        organization_id=org.id,
        employee_id=employee.id,
        training_date=now,
        training_type=training_type,
        module_key=FULL_TRAINING_KEY,
        module_name=FULL_TRAINING_NAME,
        content_summary="; ".join(m.title for m in modules),
        trainer_name=LMS_TRAINER,
        trainer_qualifications="Automated training platform",
        started_at=employee.training_started_at or now,
        completed_at=now,
        duration_minutes=sum(m.video_duration_minutes or 0 for m in modules),
        quiz_score=percent(sum(scores), len(scores) * 100) if scores else None,
        quiz_passed=True,
        employee_acknowledged=bool(acknowledgment),
        acknowledged_at=now if acknowledgment else None,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
    )
    s.add(record)

    if training_type == "initial":
        employee.initial_training_completed_at = now
    employee.last_annual_training_completed_at = now
    employee.training_completed_at = now
    employee.next_training_due_date = add_years(now)
    employee.updated_at = now
    org.last_training_date = now
    org.updated_at = now
    s.flush()

    record_event(
        s,
        actor=user,
        action="training.complete",
        entity_type="TrainingRecord",
        entity_id=str(record.id),
        metadata={
            "employee_id": employee.id,
            "employee_name": employee.full_name,
            "training_type": training_type,
            "modules_completed": len(modules),
            "average_score": record.quiz_score,
        },
    )
    logger.info("Training completed: employee=%s org=%s type=%s", employee.id, org.id, training_type)
    return record


def serialize_progress(progress: "TrainingProgress", module: "TrainingModule | None" = None) -> dict:
    module = module or progress.module
    return {
        "id": progress.id,
        "employee_id": progress.employee_id,
        "module_id": progress.module_id,
        "module_title": module.title if module else None,
        "module_order": module.order if module else None,
        "video_progress": progress.video_progress,
        "video_completed": progress.video_completed,
        "video_completed_at": iso(progress.video_completed_at),
        "last_watched_position": progress.last_watched_position,
        "quiz_passed": progress.quiz_passed,
        "quiz_passed_at": iso(progress.quiz_passed_at),
        "best_score": progress.best_score,
        "attempts": len(progress.attempts),
        "status": progress.status,
        "percent": module_percent(module, progress) if module else None,
        "completed_at": iso(progress.completed_at),
        "assigned_at": iso(progress.assigned_at),
        "due_date": iso(progress.due_date),
    }


def list_progress(s: "Session", org: "Organization", employee: "Employee") -> list["TrainingProgress"]:
    rows = list(progress_map(s, org, employee).values())
    return sorted(rows, key=lambda p: (p.module.order, p.module_id))


def _module_rows(modules: list["TrainingModule"], progress: dict[int, "TrainingProgress"]) -> list[dict]:
    unlocked = unlocked_module_ids(modules, progress)
    rows = []
    for m in modules:
        p = progress.get(m.id)
        rows.append(
            {
                "id": m.id,
                "module_key": m.module_key,
                "title": m.title,
                "description": m.description,
                "order": m.order,
                "category": m.category,
                "video_duration_minutes": m.video_duration_minutes or 0,
                "has_quiz": m.has_quiz,
                "status": _status(p),
                "locked": m.id not in unlocked,
                "percent": module_percent(m, p),
                "video_progress": p.video_progress if p else 0,
                "video_completed": p.video_completed if p else False,
                "quiz_passed": p.quiz_passed if p else False,
                "best_score": p.best_score if p else 0,
                "completed_at": iso(p.completed_at) if p else None,
            }
        )
    return rows


def portal_dashboard(s: "Session", org: "Organization", employee: "Employee") -> dict:
    modules = list_modules(s)
    rows = _module_rows(modules, progress_map(s, org, employee))
    total = len(rows)
    completed = sum(1 for r in rows if r["status"] == "completed")
    in_progress = sum(1 for r in rows if r["status"] == "in_progress")
    next_module = next((r for r in rows if r["status"] == "in_progress"), None) or next(
        (r for r in rows if r["status"] == "not_started"), None
    )
    return {
        "employee": {
            "first_name": employee.first_name,
            "last_name": employee.last_name,
            "job_title": employee.job_title,
            "department": employee.department,
            "hire_date": iso(employee.hire_date),
            "has_completed_qa": employee.has_completed_qa,
            "wvpp_acknowledged_at": iso(employee.wvpp_acknowledged_at),
            "next_training_due_date": iso(employee.next_training_due_date),
        },
        "organization": {"name": org.name},
        "training": {
            "total_modules": total,
            "completed_modules": completed,
            "in_progress_modules": in_progress,
            "overall_progress": percent(completed, total),
            "training_complete": total > 0 and completed == total,
            "next_module": next_module,
            "modules": rows,
        },
    }


def training_report(s: "Session", org: "Organization") -> dict:
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.training.models import TrainingProgress

    modules = list_modules(s)
    employees = (
        s.query(Employee)
        .filter(Employee.organization_id == org.id, Employee.is_active.is_(True))
        .order_by(Employee.last_name.asc(), Employee.first_name.asc())
        .all()
    )
    lookup: dict[int, dict[int, TrainingProgress]] = {}
    for p in s.query(TrainingProgress).filter(TrainingProgress.organization_id == org.id):
        lookup.setdefault(p.employee_id, {})[p.module_id] = p

    now = utcnow()
    reports = []
    for emp in employees:
        emp_progress = lookup.get(emp.id, {})
        statuses = [
            {
                "module_id": m.id,
                "module_title": m.title,
                "order": m.order,
                "status": _status(emp_progress.get(m.id)),
                "percent": module_percent(m, emp_progress.get(m.id)),
                "video_progress": emp_progress[m.id].video_progress if m.id in emp_progress else 0,
                "quiz_passed": emp_progress[m.id].quiz_passed if m.id in emp_progress else False,
                "best_score": emp_progress[m.id].best_score if m.id in emp_progress else 0,
                "completed_at": iso(emp_progress[m.id].completed_at) if m.id in emp_progress else None,
            }
            for m in modules
        ]
        done = sum(1 for st in statuses if st["status"] == "completed")
        reports.append(
            {
                "employee": {
                    "id": emp.id,
                    "first_name": emp.first_name,
                    "last_name": emp.last_name,
                    "email": emp.email,
                    "job_title": emp.job_title,
                    "department": emp.department,
                    "hire_date": iso(emp.hire_date),
                },
                "modules": statuses,
                "completed_modules": done,
                "total_modules": len(modules),
                "overall_progress": percent(done, len(modules)),
                "training_complete": bool(modules) and done == len(modules),
                "next_training_due_date": iso(emp.next_training_due_date),
                "initial_training_completed_at": iso(emp.initial_training_completed_at),
                "last_annual_training_completed_at": iso(emp.last_annual_training_completed_at),
            }
        )

    fully_trained = sum(1 for r in reports if r["training_complete"])
    return {
        "summary": {
            "total_employees": len(employees),
            "fully_trained": fully_trained,
            "in_progress": sum(1 for r in reports if r["completed_modules"] > 0 and not r["training_complete"]),
            "not_started": sum(1 for r in reports if r["completed_modules"] == 0),
            "overdue": sum(1 for e in employees if e.next_training_due_date and e.next_training_due_date < now),
            "completion_rate": percent(fully_trained, len(employees)),
        },
        "modules": [{"id": m.id, "title": m.title, "order": m.order, "category": m.category} for m in modules],
        "employees": reports,
    }


# ---------------------------------------------------------------------------
# Training records (LC 6401.9(e))
# ---------------------------------------------------------------------------

RECORD_TEXT_FIELDS = ("module_key", "module_name", "content_summary", "trainer_name", "trainer_qualifications")
RECORD_DATE_FIELDS = ("training_date", "started_at", "completed_at", "acknowledged_at")


def validate_record_payload(payload: dict, *, partial: bool = False) -> list[str]:
    """Validate training record payload. Returns list of errors."""
    errors: list[str] = []
    required = (
        ("training_date", "Training date"),
        ("training_type", "Training type"),
        ("module_key", "Module key"),
        ("module_name", "Module name"),
    )
    if not partial and not payload.get("employee_id"):
        errors.append("Employee is required.")
    for field, label in required:
        if (not partial or field in payload) and not str(payload.get(field) or "").strip():
            errors.append(f"{label} is required.")
    ttype = payload.get("training_type")
    if ttype and ttype not in TRAINING_TYPES:
        errors.append(f"Invalid training type. Must be one of: {', '.join(TRAINING_TYPES)}")
    for field in RECORD_DATE_FIELDS:
        if payload.get(field):
            try:
                parse_datetime(payload[field])
            except ValueError:
                errors.append(f"{field} must be an ISO date or timestamp.")
    if payload.get("duration_minutes") is not None:
        try:
            if int(payload["duration_minutes"]) < 0:
                errors.append("Duration must be zero or more minutes.")
        except (TypeError, ValueError):
            errors.append("Duration must be a whole number of minutes.")
    if payload.get("quiz_score") is not None:
        try:
            if not 0 <= int(payload["quiz_score"]) <= 100:
                errors.append("Quiz score must be between 0 and 100.")
        except (TypeError, ValueError):
            errors.append("Quiz score must be a number.")
    return errors


def list_records(
    s: "Session",
    org: "Organization",
    *,
    employee_id: int | None = None,
    training_type: str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list["TrainingRecord"]:
    from app.safework.modules.training.models import TrainingRecord

    q = s.query(TrainingRecord).filter(TrainingRecord.organization_id == org.id)
    if employee_id:
        q = q.filter(TrainingRecord.employee_id == employee_id)
    if training_type:
        q = q.filter(TrainingRecord.training_type == training_type)
    if start:
        q = q.filter(TrainingRecord.training_date >= start)
    if end:
        q = q.filter(TrainingRecord.training_date <= end)
    return q.order_by(TrainingRecord.training_date.desc(), TrainingRecord.id.desc()).all()


def get_record(s: "Session", org: "Organization", record_id: int) -> "TrainingRecord":
    from app.safework.modules.training.models import TrainingRecord

    record = s.get(TrainingRecord, record_id)
    if not record or record.organization_id != org.id:
        raise ApiError("Training record not found", 404)
    return record


def _apply_record_fields(record: "TrainingRecord", payload: dict) -> list[str]:
    updated = []
    for field in RECORD_TEXT_FIELDS:
        if field in payload:
            setattr(record, field, (str(payload[field] or "")).strip() or None)
            updated.append(field)
    for field in RECORD_DATE_FIELDS:
        if field in payload:
            setattr(record, field, parse_datetime(payload[field]))
            updated.append(field)
    if "training_type" in payload:
        record.training_type = payload["training_type"]
        updated.append("training_type")
    for field in ("duration_minutes", "quiz_score"):
        if field in payload:
            raw = payload[field]
            setattr(record, field, int(raw) if raw is not None else None)
            updated.append(field)
    for field in ("quiz_passed", "employee_acknowledged"):
        if field in payload:
            setattr(record, field, bool(payload[field]))
            updated.append(field)
    if record.employee_acknowledged and not record.acknowledged_at:
        record.acknowledged_at = utcnow()
    return updated


def _apply_employee_dates(employee: "Employee", training_type: str, completed_at: datetime | None) -> None:
    if not completed_at:
        return
    if training_type == "initial":
        employee.initial_training_completed_at = completed_at
    if training_type in ("initial", "annual"):
        employee.last_annual_training_completed_at = completed_at
        employee.next_training_due_date = add_years(completed_at)
        employee.updated_at = utcnow()


def create_record(s: "Session", org: "Organization", payload: dict, user: "User") -> "TrainingRecord":
    from app.safework.modules.employees.models import Employee
    from app.safework.modules.training.models import TrainingRecord

    try:
        employee = s.get(Employee, int(payload.get("employee_id")))
    except (TypeError, ValueError):
        employee = None
    if not employee or employee.organization_id != org.id:
        raise ApiError("Employee not found in organization", 404)

    now = utcnow()
    record = TrainingRecord(
        organization_id=org.id,
        employee_id=employee.id,
        employee_acknowledged=False,
        created_at=now,
        updated_at=now,
        created_by_user_id=user.id,
    )
    _apply_record_fields(record, payload)
    s.add(record)
    _apply_employee_dates(employee, record.training_type, record.completed_at)
    s.flush()

    record_event(
        s,
        actor=user,
        action="training.record_create",
        entity_type="TrainingRecord",
        entity_id=str(record.id),
        metadata={
            "employee_id": employee.id,
            "employee_name": employee.full_name,
            "training_type": record.training_type,
            "module_name": record.module_name,
        },
    )
    return record


def update_record(s: "Session", org: "Organization", record: "TrainingRecord", payload: dict, user: "User") -> "TrainingRecord":
    from app.safework.modules.employees.models import Employee

    payload = {k: v for k, v in payload.items() if k not in ("employee_id", "organization_id")}
    updated = _apply_record_fields(record, payload)
    record.updated_at = utcnow()
    if payload.get("completed_at"):
        employee = s.get(Employee, record.employee_id)
        if employee and employee.organization_id == org.id:
            _apply_employee_dates(employee, record.training_type, record.completed_at)

    record_event(
        s,
        actor=user,
        action="training.record_update",
        entity_type="TrainingRecord",
        entity_id=str(record.id),
        metadata={"updated_fields": updated},
    )
    return record


def serialize_record(record: "TrainingRecord") -> dict:
    return {
        "id": record.id,
        "organization_id": record.organization_id,
        "employee_id": record.employee_id,
        "training_date": iso(record.training_date),
        "training_type": record.training_type,
        "module_key": record.module_key,
        "module_name": record.module_name,
        "content_summary": record.content_summary,
        "trainer_name": record.trainer_name,
        "trainer_qualifications": record.trainer_qualifications,
        "started_at": iso(record.started_at),
        "completed_at": iso(record.completed_at),
        "duration_minutes": record.duration_minutes,
        "quiz_score": record.quiz_score,
        "quiz_passed": record.quiz_passed,
        "employee_acknowledged": record.employee_acknowledged,
        "acknowledged_at": iso(record.acknowledged_at),
        "created_at": iso(record.created_at),
        "updated_at": iso(record.updated_at),
    }
