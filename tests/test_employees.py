from conftest import invite_token, make_employee

from app.safework import mailer


def test_create_employee_sends_invite(admin_client, outbox):
    emp = make_employee(admin_client, role="supervisor", hire_date="2024-01-15")
    assert emp["full_name"] == "Eve Worker"
    assert emp["role"] == "supervisor"
    assert emp["hire_date"] == "2024-01-15"
    assert emp["invite_status"] == "sent"
    assert emp["user_id"] is not None

    assert outbox[-1]["to"] == "eve@acme.test"
    assert "https://app.safework.test/accept-invite?token=" in outbox[-1]["html"]


def test_duplicate_email_rejected(admin_client):
    make_employee(admin_client)
    r = admin_client.post("/api/employees", json={"first_name": "E", "last_name": "W", "email": "EVE@acme.test"})
    assert r.status_code == 409


def test_validation_errors(admin_client):
    r = admin_client.post("/api/employees", json={"first_name": "", "email": "not-an-email", "role": "boss"})
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "First name is required." in errors
    assert "Last name is required." in errors
    assert "Email is invalid." in errors
    assert any(e.startswith("Invalid role.") for e in errors)


def test_invite_failure_keeps_employee_pending(admin_client, monkeypatch):
    def broken(config, **kwargs):
        raise mailer.MailerError("SMTP down")

    monkeypatch.setattr(mailer, "send_email", broken)
    emp = make_employee(admin_client)
    assert emp["invite_status"] == "pending"
    assert emp["user_id"] is None

    r = admin_client.post(f"/api/employees/{emp['id']}/resend-invite")
    assert r.status_code == 502


def test_resend_invite(admin_client):
    emp = make_employee(admin_client, send_invite=False)
    assert emp["invite_status"] == "pending"

    r = admin_client.post(f"/api/employees/{emp['id']}/resend-invite")
    assert r.status_code == 200
    assert r.json["employee"]["invite_status"] == "sent"


def test_list_filters(admin_client):
    make_employee(admin_client)
    make_employee(admin_client, first_name="Sam", last_name="Lead", email="sam@acme.test", role="manager", department="Ops")

    assert len(admin_client.get("/api/employees").json) == 2
    managers = admin_client.get("/api/employees?role=manager").json
    assert [e["email"] for e in managers] == ["sam@acme.test"]
    found = admin_client.get("/api/employees?search=ops").json
    assert [e["email"] for e in found] == ["sam@acme.test"]


def test_update_and_deactivate(app, admin_client, outbox):
    emp = make_employee(admin_client)

    r = admin_client.put(f"/api/employees/{emp['id']}", json={"job_title": "Shift Lead", "phone": ""})
    assert r.status_code == 200
    assert r.json["job_title"] == "Shift Lead"
    assert r.json["phone"] is None

    portal = app.test_client()
    r = portal.post("/auth/accept-invite", json={"token": invite_token(outbox, emp["email"]), "password": "employee-pass"})
    assert r.status_code == 200

    r = admin_client.delete(f"/api/employees/{emp['id']}")
    assert r.status_code == 200
    assert r.json["is_active"] is False
    assert r.json["termination_date"] is not None

    # the linked portal account is switched off too
    assert portal.get("/auth/me").status_code == 401
    assert admin_client.get("/api/employees?active=true").json == []


def test_role_change_updates_portal_permissions(app, admin_client, outbox):
    emp = make_employee(admin_client)
    portal = app.test_client()
    portal.post("/auth/accept-invite", json={"token": invite_token(outbox, emp["email"]), "password": "employee-pass"})
    assert portal.get("/auth/me").json["user"]["roles"] == ["employee"]
    assert portal.get("/api/employees").status_code == 403

    admin_client.put(f"/api/employees/{emp['id']}", json={"role": "wvpp_administrator"})
    assert portal.get("/auth/me").json["user"]["roles"] == ["org_admin"]
    assert portal.get("/api/employees").status_code == 200


def test_accept_invite_is_single_use(app, admin_client, outbox):
    emp = make_employee(admin_client)
    token = invite_token(outbox, emp["email"])
    c = app.test_client()
    r = c.post("/auth/accept-invite", json={"token": token, "password": "employee-pass"})
    assert r.status_code == 200
    assert r.json["employee_id"] == emp["id"]

    r = app.test_client().post("/auth/accept-invite", json={"token": token, "password": "employee-pass"})
    assert r.status_code == 404

    detail = admin_client.get(f"/api/employees/{emp['id']}").json
    assert detail["invite_status"] == "accepted"


def test_other_organization_cannot_see_employee(app, admin_client, outbox):
    from conftest import ORG

    emp = make_employee(admin_client)
    other = app.test_client()
    other.post("/auth/register", json={"email": "boss@other.test", "password": "correct-horse"})
    other.post("/api/organizations", json={**ORG, "name": "Other Co", "email": "safety@other.test"})

    assert other.get(f"/api/employees/{emp['id']}").status_code == 404
    assert other.get("/api/employees").json == []


def test_deactivation_voids_outstanding_invite(app, admin_client, outbox):
    emp = make_employee(admin_client, role="manager")
    token = invite_token(outbox, emp["email"])

    assert admin_client.delete(f"/api/employees/{emp['id']}").status_code == 200

    portal = app.test_client()
    r = portal.post("/auth/accept-invite", json={"token": token, "password": "employee-pass"})
    assert r.status_code == 404
    assert portal.get("/api/employees").status_code == 401
    assert portal.get("/api/anonymous/reports").status_code == 401
    r = portal.post("/auth/login", json={"email": emp["email"], "password": "employee-pass"})
    assert r.status_code == 401


def test_put_is_active_follows_deactivation_rules(app, admin_client, outbox):
    emp = make_employee(admin_client, role="manager")
    portal = app.test_client()
    portal.post("/auth/accept-invite", json={"token": invite_token(outbox, emp["email"]), "password": "employee-pass"})
    assert portal.get("/api/employees").status_code == 200

    r = admin_client.put(f"/api/employees/{emp['id']}", json={"is_active": False})
    assert r.status_code == 200
    assert r.json["is_active"] is False
    assert r.json["termination_date"] is not None
    assert portal.get("/api/employees").status_code == 401

    r = admin_client.put(f"/api/employees/{emp['id']}", json={"is_active": True})
    assert r.json["is_active"] is True
    assert r.json["termination_date"] is None
    again = app.test_client()
    r = again.post("/auth/login", json={"email": emp["email"], "password": "employee-pass"})
    assert r.status_code == 200
    assert again.get("/api/employees").status_code == 200
