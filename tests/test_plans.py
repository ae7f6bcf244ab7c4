from conftest import portal_client, publish_plan


def test_create_plan_with_industry_defaults(admin_client):
    r = admin_client.post("/api/plans", json={"use_industry_defaults": True})
    assert r.status_code == 201
    plan = r.json
    assert plan["status"] == "draft"
    assert plan["version"] == 1
    assert [h["hazard_type"] for h in plan["hazard_assessments"]] == ["type1", "type2"]
    assert plan["hazard_assessments"][0]["risk_level"] == "high"
    assert plan["communication_system"]["anonymous_reporting"] is True
    assert plan["responsible_persons"] == []


def test_plan_validation(admin_client):
    r = admin_client.post(
        "/api/plans",
        json={
            "responsible_persons": [{"name": "Pat", "title": "GM"}],
            "hazard_assessments": [{"hazard_type": "type9", "description": "", "risk_level": "extreme"}],
        },
    )
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "Responsible person #1 is missing: phone, email." in errors
    assert any(e.startswith("Hazard #1: invalid hazard type.") for e in errors)
    assert "Hazard #1: description is required." in errors
    assert any(e.startswith("Hazard #1: invalid risk level.") for e in errors)


def test_update_plan_normalizes_hazards(admin_client):
    plan = admin_client.post("/api/plans", json={}).json
    r = admin_client.put(
        f"/api/plans/{plan['id']}",
        json={
            "hazard_assessments": [
                {"hazard_type": "type2", "description": " Late-night customers ", "risk_level": "medium",
                 "control_measures": ["Two-person closing", ""]},
            ]
        },
    )
    assert r.status_code == 200
    hazard = r.json["hazard_assessments"][0]
    assert hazard["description"] == "Late-night customers"
    assert hazard["control_measures"] == ["Two-person closing"]
    assert hazard["assessed_by"] == "Olivia Owner"
    assert hazard["assessed_at"]


def test_publish_archives_previous_plan(admin_client):
    first = publish_plan(admin_client)
    assert first["status"] == "active"
    assert first["version"] == 2
    assert first["published_at"]

    second = publish_plan(admin_client)
    assert second["status"] == "active"

    old = admin_client.get(f"/api/plans/{first['id']}").json
    assert old["status"] == "archived"
    assert old["archived_at"]

    r = admin_client.put(f"/api/plans/{first['id']}", json={"review_schedule": {"frequency": "annual"}})
    assert r.status_code == 400
    assert admin_client.post(f"/api/plans/{first['id']}/publish").status_code == 400

    org = admin_client.get("/api/organizations").json
    assert org["compliance"]["next_plan_review_due_date"] is not None
    # the organization tracks the currently active plan's publish time
    assert org["compliance"]["wvpp_created_at"] == second["published_at"]

    statuses = sorted(p["status"] for p in admin_client.get("/api/plans").json)
    assert statuses == ["active", "archived"]


def test_plan_pdf(admin_client):
    plan = publish_plan(admin_client)
    r = admin_client.get(f"/api/plans/{plan['id']}/pdf")
    assert r.status_code == 200
    assert r.mimetype == "application/pdf"
    assert r.data.startswith(b"%PDF")
    assert "WVPP-Acme-Retail-v2.pdf" in r.headers["Content-Disposition"]


def test_unknown_plan_is_404(admin_client):
    assert admin_client.get("/api/plans/999").status_code == 404


def test_employee_acknowledges_active_plan(app, admin_client, outbox):
    portal, employee = portal_client(app, admin_client, outbox)

    r = portal.post("/api/portal/acknowledge-plan")
    assert r.status_code == 404

    plan = publish_plan(admin_client)
    r = portal.post("/api/portal/acknowledge-plan")
    assert r.status_code == 200
    assert r.json["plan_id"] == plan["id"]
    assert r.json["version"] == 2

    detail = admin_client.get(f"/api/employees/{employee['id']}").json
    assert detail["wvpp_acknowledged_version"] == 2
    assert detail["wvpp_acknowledged_at"] is not None

    # the plan itself is managed from the admin side only
    assert portal.get("/api/plans").status_code == 403
    assert portal.post("/api/plans", json={}).status_code == 403
