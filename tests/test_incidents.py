from datetime import date, timedelta

from conftest import incident_payload, portal_client


def _plan_id(admin_client) -> int:
    return admin_client.post("/api/plans", json={}).json["id"]


def test_create_incident(admin_client):
    plan_id = _plan_id(admin_client)
    payload = incident_payload(
        plan_id,
        injuries={"occurred": True, "description": "Bruised arm", "ignored": "x"},
        consequences={"law_enforcement_contacted": True, "law_enforcement_response": "Officers arrived in 10 minutes"},
    )
    r = admin_client.post("/api/incidents", json=payload)
    assert r.status_code == 201
    inc = r.json
    assert inc["plan_id"] == plan_id
    assert inc["investigation_status"] == "pending"
    assert inc["location"] == {"type": "workplace", "description": "Front register"}
    assert inc["injuries"] == {"occurred": True, "description": "Bruised arm"}
    assert inc["consequences"]["law_enforcement_contacted"] is True
    assert inc["completed_by"] == {"name": "Olivia Owner", "title": "Store Manager"}
    assert inc["corrective_actions_taken"] == []


def test_incident_validation(admin_client):
    r = admin_client.post("/api/incidents", json={"incident_time": "25:00", "location": {"type": "moon"}})
    assert r.status_code == 400
    errors = r.json["errors"]
    assert "Plan is required." in errors
    assert "Incident date is required." in errors
    assert "Incident time must be HH:MM (24-hour)." in errors
    assert "Location description is required." in errors
    assert "Detailed description is required." in errors
    assert "Completed-by name and title are required." in errors


def test_incident_date_cannot_be_in_future(admin_client):
    plan_id = _plan_id(admin_client)
    tomorrow = (date.today() + timedelta(days=1)).isoformat()
    r = admin_client.post("/api/incidents", json=incident_payload(plan_id, incident_date=tomorrow))
    assert r.status_code == 400
    assert r.json["error"] == "Incident date cannot be in the future."


def test_unknown_plan(admin_client):
    r = admin_client.post("/api/incidents", json=incident_payload(9999))
    assert r.status_code == 404
    assert r.json["error"] == "Plan not found"


def test_update_and_filter(admin_client):
    plan_id = _plan_id(admin_client)
    first = admin_client.post("/api/incidents", json=incident_payload(plan_id)).json
    admin_client.post("/api/incidents", json=incident_payload(plan_id, incident_date="2024-05-10"))

    r = admin_client.put(
        f"/api/incidents/{first['id']}",
        json={
            "investigation_status": "completed",
            "investigation_notes": "Reviewed camera footage.",
            "corrective_actions_taken": ["Added panic button", "  "],
        },
    )
    assert r.status_code == 200
    assert r.json["investigation_status"] == "completed"
    assert r.json["corrective_actions_taken"] == ["Added panic button"]

    r = admin_client.put(f"/api/incidents/{first['id']}", json={"investigation_status": "closed"})
    assert r.status_code == 400

    completed = admin_client.get("/api/incidents?status=completed").json
    assert [i["id"] for i in completed] == [first["id"]]

    may = admin_client.get("/api/incidents?start_date=2024-04-01&end_date=2024-05-31").json
    assert [i["incident_date"] for i in may] == ["2024-05-10"]

    assert admin_client.get("/api/incidents?start_date=yesterday").status_code == 400
    assert len(admin_client.get("/api/incidents").json) == 2


def test_employees_cannot_read_the_log(app, admin_client, outbox):
    plan_id = _plan_id(admin_client)
    admin_client.post("/api/incidents", json=incident_payload(plan_id))
    portal, _ = portal_client(app, admin_client, outbox)
    assert portal.get("/api/incidents").status_code == 403
