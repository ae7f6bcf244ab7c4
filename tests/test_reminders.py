from datetime import datetime, timedelta

import pytest
from conftest import incident_payload, make_employee, publish_plan

from app.safework import mailer
from app.safework.db import session_scope
from app.safework.modules.employees.models import Employee
from app.safework.modules.organizations.models import Organization
from app.safework.modules.reminders.service import run_reminders

NOW = datetime(2025, 6, 1, 9, 0)


@pytest.fixture()
def due_things(app, admin_client):
    """One employee due in 30 days, one a week overdue, review due in 7 days, an incident 7 days old."""
    plan = publish_plan(admin_client)
    soon = make_employee(admin_client, send_invite=False)
    late = make_employee(admin_client, send_invite=False, first_name="Leo", last_name="Late", email="leo@acme.test")
    admin_client.post("/api/incidents", json=incident_payload(plan["id"], incident_date="2025-05-25"))
    closed = admin_client.post("/api/incidents", json=incident_payload(plan["id"], incident_date="2025-05-25")).json
    admin_client.put(f"/api/incidents/{closed['id']}", json={"investigation_status": "completed"})

    with session_scope(app) as s:
        s.get(Employee, soon["id"]).next_training_due_date = NOW + timedelta(days=30)
        s.get(Employee, late["id"]).next_training_due_date = NOW - timedelta(days=7)
        org = s.query(Organization).one()
        org.next_plan_review_due_date = NOW + timedelta(days=7)


def test_reminder_sweep(app, outbox, due_things):
    outbox.clear()
    with session_scope(app) as s:
        result = run_reminders(s, app.config, now=NOW)

    assert result["ok"] is True
    assert result["errors"] == 0
    assert result["timestamp"] == "2025-06-01T09:00:00"
    sent = sorted((d["type"], d["to"]) for d in result["details"])
    assert sent == [
        ("annual_review", "safety@acme.test"),
        ("incident_followup", "safety@acme.test"),
        ("training_due", "eve@acme.test"),
        ("training_overdue", "leo@acme.test"),
        ("training_overdue_admin", "safety@acme.test"),
    ]
    assert result["sent"] == 5
    assert len(outbox) == 5

    due = next(d for d in result["details"] if d["type"] == "training_due")
    assert due["days_until_due"] == 30


def test_off_days_send_nothing(app, outbox, due_things):
    outbox.clear()
    with session_scope(app) as s:
        result = run_reminders(s, app.config, now=NOW + timedelta(days=2))
    # due in 28 days, 9 days overdue, review in 5 days, incident 9 days old
    assert result["sent"] == 0
    assert outbox == []


def test_reminder_days_follow_org_settings(app, admin_client, outbox, due_things):
    admin_client.put("/api/settings", json={"settings": {"training_reminder_days": [28]}})
    with session_scope(app) as s:
        result = run_reminders(s, app.config, now=NOW + timedelta(days=2))
    assert [d["type"] for d in result["details"]] == ["training_due"]


def test_mail_failures_are_counted(app, monkeypatch, due_things):
    def broken(config, **kwargs):
        raise mailer.MailerError("SMTP_HOST is not configured")

    monkeypatch.setattr(mailer, "send_email", broken)
    with session_scope(app) as s:
        result = run_reminders(s, app.config, now=NOW)
    assert result["ok"] is True
    assert result["sent"] == 0
    assert result["errors"] == 5
    assert all(d["error"] == "SMTP_HOST is not configured" for d in result["details"])


def test_cron_endpoint_requires_secret(client, admin_client):
    assert client.get("/api/cron/reminders").status_code == 401
    assert client.get("/api/cron/reminders", headers={"Authorization": "Bearer wrong"}).status_code == 401

    r = client.get("/api/cron/reminders", headers={"Authorization": "Bearer cron-secret"})
    assert r.status_code == 200
    assert r.json["ok"] is True
    assert r.json["sent"] == 0
