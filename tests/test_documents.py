import io

from conftest import incident_payload, make_employee, publish_plan


def test_generate_incident_log_versions(admin_client):
    plan = publish_plan(admin_client)
    admin_client.post("/api/incidents", json=incident_payload(plan["id"]))

    r = admin_client.post("/api/documents/generate/incident_log", json={"start_date": "2024-01-01", "end_date": "2024-12-31"})
    assert r.status_code == 201
    first = r.json
    assert first["type"] == "incident_log_export"
    assert first["version"] == 1
    assert first["content_type"] == "application/pdf"
    assert first["metadata"]["incident_count"] == 1
    assert first["date_range_start"] == "2024-01-01"
    assert len(first["sha256"]) == 64

    second = admin_client.post("/api/documents/generate/incident_log", json={}).json
    assert second["version"] == 2
    assert second["id"] != first["id"]

    r = admin_client.get(f"/api/documents/{first['id']}/download")
    assert r.status_code == 200
    assert r.data.startswith(b"%PDF")
    assert len(r.data) == first["size_bytes"]

    assert admin_client.post("/api/documents/generate/incident_log", json={"start_date": "March"}).status_code == 400


def test_generate_wvpp_requires_active_plan(admin_client):
    r = admin_client.post("/api/documents/generate/wvpp", json={})
    assert r.status_code == 404
    assert r.json["error"] == "No active plan found"

    publish_plan(admin_client)
    r = admin_client.post("/api/documents/generate/wvpp", json={})
    assert r.status_code == 201
    assert r.json["type"] == "wvpp_full"
    assert r.json["plan_version"] == 2
    assert r.json["file_name"] == "WVPP-Acme_Retail-v2.pdf"


def test_training_certificate(admin_client):
    r = admin_client.post("/api/documents/generate/training_certificate", json={})
    assert r.status_code == 400

    emp = make_employee(admin_client, send_invite=False)
    r = admin_client.post(
        "/api/documents/generate/training_certificate",
        json={"employee_id": emp["id"], "completion_date": "2024-06-30"},
    )
    assert r.status_code == 201
    assert r.json["employee_id"] == emp["id"]
    assert r.json["metadata"]["completion_date"] == "2024-06-30"
    assert r.json["metadata"]["employee_name"] == "Eve Worker"

    r = admin_client.post("/api/documents/generate/training_certificate", json={"employee_id": 9999})
    assert r.status_code == 404


def test_compliance_report_and_unsupported_type(admin_client):
    r = admin_client.post("/api/documents/generate/compliance_report", json={})
    assert r.status_code == 201
    assert r.json["metadata"]["overall_score"] == 25

    r = admin_client.post("/api/documents/generate/posting_notice", json={})
    assert r.status_code == 400
    assert r.json["supported"] == ["incident_log", "training_certificate", "compliance_report", "wvpp"]


def test_upload_and_list(admin_client):
    r = admin_client.post(
        "/api/documents",
        data={"file": (io.BytesIO(b"signed acknowledgment"), "ack form.txt"), "type": "employee_acknowledgment"},
        content_type="multipart/form-data",
    )
    assert r.status_code == 201
    doc = r.json
    assert doc["type"] == "employee_acknowledgment"
    assert doc["file_name"] == "ack_form.txt"
    assert doc["metadata"]["original_file_name"] == "ack form.txt"

    r = admin_client.get(f"/api/documents/{doc['id']}/download")
    assert r.data == b"signed acknowledgment"

    admin_client.post("/api/documents/generate/compliance_report", json={})
    assert len(admin_client.get("/api/documents").json) == 2
    only = admin_client.get("/api/documents?type=employee_acknowledgment").json
    assert [d["id"] for d in only] == [doc["id"]]

    r = admin_client.post(
        "/api/documents",
        data={"file": (io.BytesIO(b""), "empty.txt")},
        content_type="multipart/form-data",
    )
    assert r.status_code == 400

    r = admin_client.post(
        "/api/documents",
        data={"file": (io.BytesIO(b"x"), "x.txt"), "type": "selfie"},
        content_type="multipart/form-data",
    )
    assert r.status_code == 400

    assert admin_client.get("/api/documents/9999/download").status_code == 404
