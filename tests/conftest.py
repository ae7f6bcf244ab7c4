import re

import pytest

from app.safework import auth, create_app, mailer
from app.safework.db import session_scope
from app.safework.models import Base
from app.safework.rbac import ROLES, ensure_role

OWNER = {"email": "owner@acme.test", "password": "correct-horse", "first_name": "Olivia", "last_name": "Owner"}

ORG = {
    "name": "Acme Retail",
    "address": {"street": "1 Main St", "city": "Oakland", "state": "CA", "zip": "94601"},
    "phone": "555-0100",
    "email": "safety@acme.test",
    "industry": "retail",
    "employee_count": 12,
    "workplace_types": ["retail_store"],
}


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.setenv("APP_URL", "https://app.safework.test")
    monkeypatch.setenv("STORAGE_BACKEND", "local")
    monkeypatch.setenv("STORAGE_LOCAL_ROOT", str(tmp_path / "storage"))
    monkeypatch.setenv("CRON_SECRET", "cron-secret")
    monkeypatch.setenv("STRIPE_WEBHOOK_SECRET", "whsec_test")
    monkeypatch.setenv("STRIPE_STARTER_PRICE_ID", "price_starter")
    monkeypatch.setenv("STRIPE_PROFESSIONAL_PRICE_ID", "price_pro")
    for k in (
        "S3_ENDPOINT",
        "S3_REGION",
        "S3_BUCKET",
        "S3_ACCESS_KEY_ID",
        "S3_SECRET_ACCESS_KEY",
        "SMTP_HOST",
        "STRIPE_SECRET_KEY",
        "STRIPE_ENTERPRISE_PRICE_ID",
    ):
        monkeypatch.delenv(k, raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        for role_key in ROLES:
            ensure_role(s, role_key)

    auth._login_attempts.clear()
    yield app
    engine.dispose()


@pytest.fixture()
def outbox(monkeypatch):
    """Captures outgoing mail instead of talking to SMTP."""
    sent: list[dict] = []

    def fake_send(config, *, to, subject, html, text=None):
        sent.append({"to": to, "subject": subject, "html": html})
        return f"<msg-{len(sent)}@safeworkca.test>"

    monkeypatch.setattr(mailer, "send_email", fake_send)
    return sent


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_client(app, outbox):
    """Signed-in owner of a freshly onboarded organization."""
    c = app.test_client()
    r = c.post("/auth/register", json=OWNER)
    assert r.status_code == 201
    r = c.post("/api/organizations", json=ORG)
    assert r.status_code == 201
    return c


@pytest.fixture()
def org_public_id(admin_client):
    return admin_client.get("/api/organizations").json["public_id"]


def invite_token(outbox, email: str) -> str:
    for msg in reversed(outbox):
        if msg["to"] == email:
            m = re.search(r"token=([0-9a-f]+)", msg["html"])
            if m:
                return m.group(1)
    raise AssertionError(f"no invite sent to {email}")


def make_employee(admin_client, **overrides) -> dict:
    payload = {"first_name": "Eve", "last_name": "Worker", "email": "eve@acme.test", "job_title": "Cashier"}
    payload.update(overrides)
    r = admin_client.post("/api/employees", json=payload)
    assert r.status_code == 201, r.json
    return r.json


def portal_client(app, admin_client, outbox, **overrides):
    """Invite an employee and return (client signed in as them, employee json)."""
    employee = make_employee(admin_client, **overrides)
    c = app.test_client()
    r = c.post("/auth/accept-invite", json={"token": invite_token(outbox, employee["email"]), "password": "employee-pass"})
    assert r.status_code == 200, r.json
    return c, employee


def publish_plan(admin_client) -> dict:
    r = admin_client.post("/api/plans", json={"use_industry_defaults": True})
    assert r.status_code == 201
    r = admin_client.post(f"/api/plans/{r.json['id']}/publish")
    assert r.status_code == 200
    return r.json


def incident_payload(plan_id: int, **overrides) -> dict:
    payload = {
        "plan_id": plan_id,
        "incident_date": "2024-03-01",
        "incident_time": "14:30",
        "location": {"type": "workplace", "description": "Front register"},
        "workplace_violence_types": ["type2"],
        "incident_types": ["threat_physical_force"],
        "detailed_description": "Customer threatened cashier after a refund was refused.",
        "perpetrator_classification": "client_customer",
        "completed_by": {"name": "Olivia Owner", "title": "Store Manager"},
    }
    payload.update(overrides)
    return payload
