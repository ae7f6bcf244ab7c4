from conftest import ORG, OWNER


def test_health_ok(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json["ok"] is True

    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.data == b"ok"


def test_api_requires_login(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/api/plans").status_code == 401
    assert client.get("/api/organizations").status_code == 401


def test_register_then_onboard(client):
    r = client.post("/auth/register", json=OWNER)
    assert r.status_code == 201
    assert r.json["needs_onboarding"] is True
    assert r.json["user"]["roles"] == []

    # no organization yet, so no role and no permissions
    assert client.get("/api/plans").status_code == 403

    r = client.post("/api/organizations", json=ORG)
    assert r.status_code == 201
    assert r.json["name"] == "Acme Retail"
    assert r.json["plan"] == "free"
    assert r.json["settings"]["quiz_passing_score"] == 70
    assert len(r.json["public_id"]) == 32

    me = client.get("/auth/me").json
    assert me["needs_onboarding"] is False
    assert me["user"]["roles"] == ["org_admin"]
    assert "plans.publish" in me["user"]["permissions"]

    r = client.post("/api/organizations", json=ORG)
    assert r.status_code == 409


def test_onboarding_validation(client):
    client.post("/auth/register", json=OWNER)
    r = client.post("/api/organizations", json={**ORG, "industry": "mining", "employee_count": 0})
    assert r.status_code == 400
    assert any("industry" in e for e in r.json["errors"])
    assert "Employee count must be at least 1." in r.json["errors"]


def test_register_rejects_duplicates_and_short_passwords(client):
    assert client.post("/auth/register", json={**OWNER, "password": "short"}).status_code == 400
    assert client.post("/auth/register", json=OWNER).status_code == 201
    other = client.application.test_client()
    assert other.post("/auth/register", json=OWNER).status_code == 409


def test_login_logout(client):
    client.post("/auth/register", json=OWNER)
    client.post("/auth/logout")
    assert client.get("/auth/me").status_code == 401

    r = client.post("/auth/login", json={"email": OWNER["email"], "password": "wrong-password"})
    assert r.status_code == 401

    r = client.post("/auth/login", json={"email": OWNER["email"].upper(), "password": OWNER["password"]})
    assert r.status_code == 200
    assert r.json["user"]["email"] == OWNER["email"]


def test_login_rate_limited(client):
    for _ in range(5):
        r = client.post("/auth/login", json={"email": "nobody@acme.test", "password": "x"})
        assert r.status_code == 401
    r = client.post("/auth/login", json={"email": "nobody@acme.test", "password": "x"})
    assert r.status_code == 429


def test_settings_update(admin_client):
    r = admin_client.put(
        "/api/settings",
        json={"dba": "Acme Outlet", "settings": {"training_reminder_days": [14, 3], "quiz_passing_score": 80}},
    )
    assert r.status_code == 200
    assert r.json["dba"] == "Acme Outlet"
    assert r.json["settings"]["training_reminder_days"] == [14, 3]
    assert r.json["settings"]["quiz_passing_score"] == 80
    # untouched defaults survive the merge
    assert r.json["settings"]["auto_assign_training"] is True

    r = admin_client.put("/api/settings", json={"settings": {"quiz_passing_score": 150}})
    assert r.status_code == 400


def test_csrf_enforced_for_cookie_sessions(app, admin_client):
    app.config["CSRF_ENABLED"] = True
    r = admin_client.post("/api/plans", json={})
    assert r.status_code == 400
    assert "CSRF" in r.json["error"]

    token = admin_client.get("/auth/csrf").json["csrf_token"]
    r = admin_client.post("/api/plans", json={}, headers={"X-CSRF-Token": token})
    assert r.status_code == 201


def test_non_object_json_bodies_are_rejected(client, admin_client):
    r = client.post("/auth/login", json=[1])
    assert r.status_code == 400
    assert r.json["error"] == "Request body must be a JSON object"

    assert client.post("/api/anonymous/submit", json=["x"]).status_code == 400
    assert admin_client.post("/api/employees", json="eve@acme.test").status_code == 400
    assert admin_client.put("/api/settings", json=[{"settings": {}}]).status_code == 400

    # an unparsable body still reads as empty and fails validation normally
    r = admin_client.post("/api/incidents", data="{not json", content_type="application/json")
    assert r.status_code == 400
    assert r.json["error"] != "Request body must be a JSON object"
