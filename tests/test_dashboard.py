from datetime import datetime, timedelta

from conftest import incident_payload, make_employee, publish_plan

from app.safework.modules.dashboard.service import compliance_scores


def test_dashboard_before_plan(admin_client):
    r = admin_client.get("/api/dashboard")
    assert r.status_code == 200
    data = r.json
    assert data["compliance"]["scores"] == {"wvpp": 0, "training": 0, "annual_review": 0, "incident_log": 100}
    assert data["compliance"]["overall"] == 25
    assert data["stats"]["active_plan"] is False
    assert any(a["level"] == "critical" and "No active WVPP" in a["message"] for a in data["alerts"])
    assert data["deadlines"] == []


def test_dashboard_after_publish(admin_client):
    plan = publish_plan(admin_client)
    data = admin_client.get("/api/dashboard").json
    assert data["compliance"]["overall"] == 100
    assert data["stats"]["active_plan_version"] == 2
    assert data["deadlines"][0]["type"] == "annual_review"
    assert data["deadlines"][0]["overdue"] is False
    assert data["recent_activity"][0]["action"] == "plan.publish"

    make_employee(admin_client, send_invite=False)
    data = admin_client.get("/api/dashboard").json
    assert data["compliance"]["scores"]["training"] == 0
    assert data["compliance"]["overall"] == 75
    assert "1 employee have not completed training." in [a["message"] for a in data["alerts"]]

    admin_client.post("/api/incidents", json=incident_payload(plan["id"]))
    data = admin_client.get("/api/dashboard").json
    assert data["compliance"]["scores"]["incident_log"] == 0
    assert data["stats"]["open_incidents"] == 1
    assert "1 incident pending investigation." in [a["message"] for a in data["alerts"]]

    # the stored score follows the last dashboard view
    assert admin_client.get("/api/organizations").json["compliance"]["score"] == 50


def test_dashboard_counts_new_anonymous_reports(client, admin_client, org_public_id):
    client.post(
        "/api/anonymous/submit",
        json={"organization_id": org_public_id, "report_type": "other", "title": "Parking lot", "description": "Poor lighting."},
    )
    data = admin_client.get("/api/dashboard").json
    assert data["stats"]["new_anonymous_reports"] == 1
    assert "1 new anonymous report require attention." in [a["message"] for a in data["alerts"]]


class _Org:
    def __init__(self, next_review=None, last_review=None):
        self.next_plan_review_due_date = next_review
        self.last_plan_review_date = last_review


def test_annual_review_score_grace_period():
    now = datetime(2025, 6, 1)
    counts = {"active_employees": 0, "trained_employees": 0, "total_incidents": 0, "open_incidents": 0}

    current = compliance_scores(_Org(now + timedelta(days=10), now - timedelta(days=355)), object(), counts, now)
    assert current["annual_review"] == 100

    late = compliance_scores(_Org(now - timedelta(days=30), now - timedelta(days=395)), object(), counts, now)
    assert late["annual_review"] == 50

    lapsed = compliance_scores(_Org(now - timedelta(days=300), datetime(2023, 11, 1)), object(), counts, now)
    assert lapsed["annual_review"] == 0
    assert lapsed["overall"] == 75
