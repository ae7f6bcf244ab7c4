import pytest
from conftest import make_employee, portal_client

from app.safework.db import session_scope
from app.safework.modules.training.models import TrainingModule, TrainingQuestion
from app.safework.modules.training.seed import MODULES, seed_training_catalogue
from app.safework.modules.training.service import grade_answers


@pytest.fixture()
def catalogue(app):
    """Two-module catalogue: a video+quiz module followed by a reading module without a quiz."""
    with session_scope(app) as s:
        video = TrainingModule(
            module_key="intro-v1",
            title="Intro",
            description="Watch and answer.",
            order=1,
            category="wvpp_overview",
            video_url="https://videos.example/intro.mp4",
            video_duration_minutes=5,
            has_quiz=True,
            passing_score=70,
        )
        video.questions = [
            TrainingQuestion(
                question_text="Who can report a threat?",
                question_type="multiple_choice",
                options=[
                    {"id": "a", "text": "Any employee", "is_correct": True},
                    {"id": "b", "text": "Only managers", "is_correct": False},
                ],
                explanation="Everyone can report.",
                order=1,
            ),
            TrainingQuestion(
                question_text="Retaliation for reporting is prohibited.",
                question_type="true_false",
                options=[
                    {"id": "true", "text": "True", "is_correct": True},
                    {"id": "false", "text": "False", "is_correct": False},
                ],
                order=2,
            ),
        ]
        reading = TrainingModule(
            module_key="reading-v1",
            title="Emergency procedures",
            description="Read the handout.",
            order=2,
            category="emergency_response",
            type="document",
            video_duration_minutes=3,
            has_quiz=False,
        )
        s.add_all([video, reading])
        s.flush()
        ids = {"video": video.id, "reading": reading.id, "questions": [q.id for q in video.questions]}
    return ids


def _answers(question_ids, picks):
    return [{"question_id": qid, "selected_option_ids": [pick]} for qid, pick in zip(question_ids, picks)]


def test_module_detail_hides_answers(app, admin_client, outbox, catalogue):
    portal, _ = portal_client(app, admin_client, outbox)
    modules = portal.get("/api/training/modules").json
    assert [m["module_key"] for m in modules] == ["intro-v1", "reading-v1"]

    detail = portal.get(f"/api/training/modules/{catalogue['video']}").json
    assert len(detail["questions"]) == 2
    assert detail["questions"][0]["options"] == [{"id": "a", "text": "Any employee"}, {"id": "b", "text": "Only managers"}]

    assert portal.get("/api/training/modules/9999").status_code == 404


def test_full_training_flow(app, admin_client, outbox, catalogue):
    portal, employee = portal_client(app, admin_client, outbox)
    qids = catalogue["questions"]

    # auto-assigned on creation
    rows = portal.get("/api/training/progress").json
    assert [r["status"] for r in rows] == ["not_started", "not_started"]

    r = portal.post("/api/training/progress/video", json={"module_id": catalogue["reading"], "video_progress": 100})
    assert r.status_code == 403
    assert r.json["error"] == "Module is locked"

    r = portal.post("/api/training/progress/quiz", json={"module_id": catalogue["video"], "answers": _answers(qids, ["a", "true"])})
    assert r.status_code == 400
    assert r.json["error"] == "Complete the video before taking the quiz"

    r = portal.post(
        "/api/training/progress/video",
        json={"module_id": catalogue["video"], "video_progress": 95, "last_watched_position": 280.5},
    )
    assert r.status_code == 200
    assert r.json["video_completed"] is True
    assert r.json["status"] == "in_progress"
    assert r.json["percent"] == 50
    assert r.json["last_watched_position"] == 280.5

    # progress never moves backwards
    r = portal.post("/api/training/progress/video", json={"module_id": catalogue["video"], "video_progress": 40})
    assert r.json["video_progress"] == 95

    r = portal.post("/api/training/progress/quiz", json={"module_id": catalogue["video"], "answers": _answers(qids, ["b", "true"])})
    assert r.status_code == 200
    assert r.json["score"] == 50
    assert r.json["passed"] is False
    assert r.json["module_completed"] is False
    assert r.json["answers"][0]["correct_option_ids"] == ["a"]
    assert r.json["answers"][0]["explanation"] == "Everyone can report."

    r = portal.post("/api/training/progress/quiz", json={"module_id": catalogue["video"], "answers": _answers(qids, ["a", "true"])})
    assert r.json["attempt_number"] == 2
    assert r.json["score"] == 100
    assert r.json["passed"] is True
    assert r.json["module_completed"] is True
    assert r.json["best_score"] == 100

    r = portal.post("/api/training/complete", json={"acknowledgment": True})
    assert r.status_code == 400
    assert r.json["error"] == "Not all required modules are completed"
    assert [m["id"] for m in r.json["incomplete_modules"]] == [catalogue["reading"]]

    # no video and no quiz: the first progress post completes it
    r = portal.post("/api/training/progress/video", json={"module_id": catalogue["reading"], "video_progress": 10})
    assert r.status_code == 200
    assert r.json["status"] == "completed"

    dash = portal.get("/api/portal/dashboard").json
    assert dash["training"]["training_complete"] is True
    assert dash["training"]["overall_progress"] == 100
    assert dash["training"]["next_module"] is None

    r = portal.post("/api/training/complete", json={"acknowledgment": True})
    assert r.status_code == 201
    assert r.json["training_type"] == "initial"
    record = r.json["training_record"]
    assert record["module_key"] == "sb553-full-training"
    assert record["quiz_score"] == 100
    assert record["duration_minutes"] == 8
    assert record["employee_acknowledged"] is True
    assert r.json["next_due_date"][:4] == str(int(r.json["completed_at"][:4]) + 1)

    r = portal.post("/api/training/complete", json={"acknowledgment": True})
    assert r.json["training_type"] == "annual"

    records = admin_client.get(f"/api/training?employee_id={employee['id']}").json
    assert sorted(x["training_type"] for x in records) == ["annual", "initial"]

    report = admin_client.get("/api/training/reports").json
    assert report["summary"]["total_employees"] == 1
    assert report["summary"]["fully_trained"] == 1
    assert report["summary"]["completion_rate"] == 100
    assert report["employees"][0]["modules"][0]["best_score"] == 100


def test_progress_lookup_for_other_employees_needs_training_view(app, admin_client, outbox, catalogue):
    portal, employee = portal_client(app, admin_client, outbox)
    assert portal.get(f"/api/training/progress?employee_id={employee['id']}").status_code == 403

    rows = admin_client.get(f"/api/training/progress?employee_id={employee['id']}").json
    assert len(rows) == 2


def test_quiz_on_module_without_quiz(app, admin_client, outbox, catalogue):
    portal, _ = portal_client(app, admin_client, outbox)
    portal.post("/api/training/progress/video", json={"module_id": catalogue["video"], "video_progress": 100})
    portal.post(
        "/api/training/progress/quiz",
        json={"module_id": catalogue["video"], "answers": _answers(catalogue["questions"], ["a", "true"])},
    )
    r = portal.post("/api/training/progress/quiz", json={"module_id": catalogue["reading"], "answers": []})
    assert r.status_code == 400
    assert r.json["error"] == "This module has no quiz"


def test_assign_training(admin_client, catalogue):
    admin_client.put("/api/settings", json={"settings": {"auto_assign_training": False}})
    emp = make_employee(admin_client, send_invite=False)

    r = admin_client.post("/api/training/assign", json={"employee_ids": [emp["id"]], "due_date": "2024-12-31"})
    assert r.status_code == 201
    assert r.json["assigned"] == 2
    assert r.json["due_date"] == "2024-12-31T00:00:00"

    r = admin_client.post("/api/training/assign", json={"employee_ids": [emp["id"]]})
    assert r.json["assigned"] == 0

    assert admin_client.post("/api/training/assign", json={"employee_ids": []}).status_code == 400
    assert admin_client.post("/api/training/assign", json={"employee_ids": [9999]}).status_code == 404


def test_manual_training_records(admin_client):
    emp = make_employee(admin_client, send_invite=False)
    payload = {
        "employee_id": emp["id"],
        "training_date": "2024-02-01",
        "training_type": "annual",
        "module_key": "classroom-2024",
        "module_name": "Classroom refresher",
        "trainer_name": "Dana Trainer",
        "completed_at": "2024-02-01",
        "duration_minutes": 60,
    }
    r = admin_client.post("/api/training", json=payload)
    assert r.status_code == 201
    record = r.json
    assert record["trainer_name"] == "Dana Trainer"
    assert record["employee_acknowledged"] is False

    detail = admin_client.get(f"/api/employees/{emp['id']}").json
    assert detail["training"]["next_training_due_date"] == "2025-02-01T00:00:00"

    feb = admin_client.get("/api/training?start_date=2024-01-01&end_date=2024-02-01").json
    assert [x["id"] for x in feb] == [record["id"]]
    assert admin_client.get("/api/training?training_type=initial").json == []

    r = admin_client.put(f"/api/training/{record['id']}", json={"employee_acknowledged": True})
    assert r.json["acknowledged_at"] is not None

    assert admin_client.put(f"/api/training/{record['id']}", json={"quiz_score": 150}).status_code == 400
    assert admin_client.post("/api/training", json={**payload, "training_type": "refresher"}).status_code == 400
    assert admin_client.post("/api/training", json={**payload, "employee_id": 9999}).status_code == 404


def test_grade_answers_rules(app, catalogue):
    with session_scope(app) as s:
        module = s.get(TrainingModule, catalogue["video"])
        q1, q2 = module.questions
        q2.question_type = "select_all"
        q2.options = [
            {"id": "x", "text": "X", "is_correct": True},
            {"id": "y", "text": "Y", "is_correct": True},
            {"id": "z", "text": "Z", "is_correct": False},
        ]

        # duplicate question ids only count once; skipped questions score zero
        result = grade_answers(
            module.questions,
            [
                {"question_id": q1.id, "selected_option_ids": ["a"]},
                {"question_id": q1.id, "selected_option_ids": ["a"]},
            ],
        )
        assert result["score"] == 50
        assert result["correct_count"] == 1
        assert result["answers"][1]["is_correct"] is False

        partial = grade_answers(module.questions, [{"question_id": q2.id, "selected_option_ids": ["x"]}])
        assert partial["correct_count"] == 0

        exact = grade_answers(module.questions, [{"question_id": q2.id, "selected_option_ids": ["y", "x"]}])
        assert exact["correct_count"] == 1


def test_seed_catalogue_is_idempotent(app):
    with session_scope(app) as s:
        seed_training_catalogue(s)
    with session_scope(app) as s:
        seed_training_catalogue(s)
        modules = s.query(TrainingModule).order_by(TrainingModule.order).all()
        assert [m.module_key for m in modules] == [m["module_key"] for m in MODULES]
        assert all(len(m.questions) == 5 for m in modules)


def test_video_progress_is_clamped_and_weighted(app, admin_client, outbox, catalogue):
    portal, _ = portal_client(app, admin_client, outbox)
    url = "/api/training/progress/video"

    r = portal.post(url, json={"module_id": catalogue["video"], "video_progress": -5})
    assert r.json["video_progress"] == 0
    assert r.json["percent"] == 0

    # half of the module weight is the video, the other half the quiz
    r = portal.post(url, json={"module_id": catalogue["video"], "video_progress": 40})
    assert r.json["video_completed"] is False
    assert r.json["percent"] == 20

    r = portal.post(url, json={"module_id": catalogue["video"], "video_progress": 150})
    assert r.json["video_progress"] == 100
    assert r.json["video_completed"] is True
    assert r.json["percent"] == 50

    r = portal.post(url, json={"module_id": catalogue["video"], "video_progress": "ninety"})
    assert r.status_code == 400


def test_quiz_attempt_limit(app, admin_client, outbox, catalogue):
    with session_scope(app) as s:
        s.get(TrainingModule, catalogue["video"]).max_attempts = 1
    portal, _ = portal_client(app, admin_client, outbox)
    portal.post("/api/training/progress/video", json={"module_id": catalogue["video"], "video_progress": 100})

    wrong = {"module_id": catalogue["video"], "answers": _answers(catalogue["questions"], ["b", "false"])}
    r = portal.post("/api/training/progress/quiz", json=wrong)
    assert r.status_code == 200
    assert r.json["passed"] is False

    r = portal.post("/api/training/progress/quiz", json=wrong)
    assert r.status_code == 400
    assert r.json["error"] == "Maximum quiz attempts reached"


def test_quiz_rejects_malformed_selections(app, admin_client, outbox, catalogue):
    portal, _ = portal_client(app, admin_client, outbox)
    qid = catalogue["questions"][1]
    for selected in (5, "true", {"id": "true"}):
        r = portal.post(
            "/api/training/progress/quiz",
            json={"module_id": catalogue["video"], "answers": [{"question_id": qid, "selected_option_ids": selected}]},
        )
        assert r.status_code == 400
        assert r.json["error"] == "Each answer needs a question_id and a selected_option_ids array"

    r = portal.post("/api/training/progress/quiz", json={"module_id": catalogue["video"], "answers": ["a"]})
    assert r.status_code == 400


def test_unknown_questions_earn_nothing(app, catalogue):
    with session_scope(app) as s:
        module = s.get(TrainingModule, catalogue["video"])
        result = grade_answers(
            module.questions,
            [
                {"question_id": 9999, "selected_option_ids": ["a"]},
                {"question_id": "abc", "selected_option_ids": ["true"]},
            ],
        )
        assert result["score"] == 0
        assert result["correct_count"] == 0
        assert result["total_questions"] == 2
        assert [a["is_correct"] for a in result["answers"]] == [False, False]
        assert result["answers"][0]["question_id"] == 9999
