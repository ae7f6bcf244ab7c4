from conftest import incident_payload, publish_plan


def _submit(client, org_public_id, ip="203.0.113.7", **overrides):
    payload = {
        "organization_id": org_public_id,
        "report_type": "harassment",
        "title": "Supervisor shouting",
        "description": "The night supervisor threatens staff during closing.",
        "incident_date": "2024-03-02",
        "incident_location": "Back office",
        "witnesses_present": True,
    }
    payload.update(overrides)
    return client.post("/api/anonymous/submit", json=payload, headers={"X-Forwarded-For": ip})


def test_submission_requires_fields(client, org_public_id):
    r = client.post("/api/anonymous/submit", json={})
    assert r.status_code == 400
    assert r.json["error"] == "organization_id is required"

    r = _submit(client, org_public_id, title="")
    assert r.json["error"] == "report_type, title, and description are required"

    r = _submit(client, org_public_id, report_type="gossip")
    assert r.status_code == 400
    assert r.json["error"] == "Invalid report type"

    r = _submit(client, "0" * 32)
    assert r.status_code == 404


def test_reporter_and_admin_thread(client, admin_client, org_public_id):
    r = _submit(client, org_public_id)
    assert r.status_code == 201
    assert r.json["status"] == "new"
    anonymous_id = r.json["anonymous_id"]
    token = r.json["access_token"]
    assert anonymous_id.startswith("ANON-")

    creds = {"anonymous_id": anonymous_id, "access_token": token}
    r = client.post("/api/anonymous/status", json={**creds, "access_token": "nope"})
    assert r.status_code == 403
    assert r.json["error"] == "Invalid access code"

    listing = admin_client.get("/api/anonymous/reports").json
    assert listing["summary"] == {"total": 1, "new": 1, "active": 0, "resolved": 0}
    report_id = listing["reports"][0]["id"]

    r = admin_client.post(
        f"/api/anonymous/reports/{report_id}/question",
        json={"content": "Which shift did this happen on?", "admin_name": "HR"},
    )
    assert r.status_code == 201
    assert r.json["status"] == "under_review"

    r = client.post("/api/anonymous/status", json=creds)
    assert r.status_code == 200
    assert r.json["report"]["status"] == "under_review"
    assert "resolution" not in r.json["report"]
    assert [m["message_type"] for m in r.json["thread"]] == ["admin_question"]
    assert r.json["thread"][0]["admin_name"] == "HR"
    assert r.json["thread"][0]["read_by_reporter"] is True

    r = client.post("/api/anonymous/respond", json={**creds, "content": "Saturday closing shift."})
    assert r.status_code == 201
    assert r.json["message"]["message_type"] == "reporter_response"

    summary_row = admin_client.get("/api/anonymous/reports").json["reports"][0]
    assert summary_row["thread_count"] == 2
    assert summary_row["unread_responses"] == 1

    detail = admin_client.get(f"/api/anonymous/reports/{report_id}").json
    assert detail["report"]["witnesses_present"] is True
    assert [m["content"] for m in detail["thread"]] == ["Which shift did this happen on?", "Saturday closing shift."]
    assert admin_client.get("/api/anonymous/reports").json["reports"][0]["unread_responses"] == 0


def test_admin_update_and_close(client, admin_client, org_public_id):
    r = _submit(client, org_public_id)
    creds = {"anonymous_id": r.json["anonymous_id"], "access_token": r.json["access_token"]}
    report_id = admin_client.get("/api/anonymous/reports").json["reports"][0]["id"]

    plan = publish_plan(admin_client)
    incident = admin_client.post("/api/incidents", json=incident_payload(plan["id"])).json

    r = admin_client.put(
        f"/api/anonymous/reports/{report_id}",
        json={
            "priority": "high",
            "assigned_to": "Olivia Owner",
            "linked_incident_id": incident["id"],
            "internal_note": "Spoke with night staff.",
        },
    )
    assert r.status_code == 200
    assert r.json["priority"] == "high"
    assert r.json["linked_incident_id"] == incident["id"]
    assert r.json["internal_notes"][0]["content"] == "Spoke with night staff."
    assert r.json["internal_notes"][0]["added_by"] == "Olivia Owner"

    assert admin_client.put(f"/api/anonymous/reports/{report_id}", json={"status": "done"}).status_code == 400
    assert admin_client.put(f"/api/anonymous/reports/{report_id}", json={"linked_incident_id": 9999}).status_code == 404

    r = admin_client.put(
        f"/api/anonymous/reports/{report_id}",
        json={"status": "closed", "resolution": "Supervisor retrained and moved to day shift."},
    )
    assert r.json["status"] == "closed"
    assert r.json["resolved_at"] is not None

    r = client.post("/api/anonymous/status", json=creds)
    assert r.json["report"]["resolution"] == "Supervisor retrained and moved to day shift."

    r = client.post("/api/anonymous/respond", json={**creds, "content": "Thanks"})
    assert r.status_code == 400

    summary = admin_client.get("/api/anonymous/reports").json["summary"]
    assert summary["resolved"] == 1


def test_submission_throttle(client, org_public_id):
    for _ in range(5):
        assert _submit(client, org_public_id).status_code == 201
    assert _submit(client, org_public_id).status_code == 429
    # a different source address is counted separately
    assert _submit(client, org_public_id, ip="198.51.100.9").status_code == 201


def test_reports_are_scoped_to_admins(app, client, admin_client, org_public_id, outbox):
    from conftest import portal_client

    _submit(client, org_public_id)
    portal, _ = portal_client(app, admin_client, outbox)
    assert portal.get("/api/anonymous/reports").status_code == 403
