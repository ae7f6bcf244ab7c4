import json
import time

import pytest

from app.safework.modules.billing import stripe_client
from app.safework.modules.billing.service import resolve_plan


class FakeStripe:
    def __init__(self, subscription=None, fail=False):
        self.subscription = subscription or {}
        self.fail = fail
        self.calls = []

    def retrieve_subscription(self, subscription_id):
        self.calls.append(("retrieve_subscription", subscription_id))
        if self.fail:
            raise stripe_client.StripeError("boom")
        return {"id": subscription_id, **self.subscription}

    def create_checkout_session(self, params):
        self.calls.append(("checkout", params))
        if self.fail:
            raise stripe_client.StripeError("boom")
        return {"url": "https://checkout.stripe.test/c/sess_1"}

    def create_portal_session(self, *, customer, return_url):
        self.calls.append(("portal", customer, return_url))
        return {"url": "https://billing.stripe.test/p/sess_2"}


@pytest.fixture()
def fake_stripe(monkeypatch):
    fake = FakeStripe(
        subscription={
            "status": "active",
            "items": {"data": [{"price": {"id": "price_pro"}, "current_period_end": 1767225600}]},
        }
    )
    monkeypatch.setattr(stripe_client, "client_from_config", lambda config: fake)
    return fake


def _signed(client, event, secret="whsec_test", ts=None):
    body = json.dumps(event).encode("utf-8")
    ts = ts or int(time.time())
    sig = stripe_client.compute_signature(body, ts, secret)
    return client.post(
        "/api/webhooks/stripe",
        data=body,
        headers={"Stripe-Signature": f"t={ts},v1={sig}"},
        content_type="application/json",
    )


def test_construct_event_checks_signature_and_age():
    body = b'{"type": "invoice.paid"}'
    ts = 1_700_000_000
    header = f"t={ts},v1={stripe_client.compute_signature(body, ts, 'whsec_x')}"

    assert stripe_client.construct_event(body, header, "whsec_x", now=ts + 10)["type"] == "invoice.paid"
    with pytest.raises(stripe_client.SignatureVerificationError):
        stripe_client.construct_event(body, header, "whsec_x", now=ts + 301)
    with pytest.raises(stripe_client.SignatureVerificationError):
        stripe_client.construct_event(body, header, "whsec_other", now=ts)
    with pytest.raises(stripe_client.SignatureVerificationError):
        stripe_client.construct_event(body, "v1=abc", "whsec_x", now=ts)


def test_flatten_uses_stripe_form_encoding():
    pairs = stripe_client._flatten(
        {"mode": "subscription", "line_items": [{"price": "price_pro", "quantity": 1}], "metadata": {"organization_id": "7"}}
    )
    assert pairs == [
        ("mode", "subscription"),
        ("line_items[0][price]", "price_pro"),
        ("line_items[0][quantity]", "1"),
        ("metadata[organization_id]", "7"),
    ]


def test_resolve_plan():
    config = {"STRIPE_STARTER_PRICE_ID": "price_s", "STRIPE_PROFESSIONAL_PRICE_ID": "price_p", "STRIPE_ENTERPRISE_PRICE_ID": ""}
    assert resolve_plan("price_p", config) == "professional"
    assert resolve_plan("price_unknown", config) == "starter"
    assert resolve_plan("", config) == "starter"


def test_webhook_rejects_bad_signatures(client):
    r = client.post("/api/webhooks/stripe", data=b"{}", content_type="application/json")
    assert r.status_code == 400
    assert r.json["error"] == "Missing stripe-signature header"

    r = _signed(client, {"type": "checkout.session.completed"}, secret="whsec_wrong")
    assert r.status_code == 400
    assert r.json["error"] == "Invalid signature"


def test_checkout_then_cancel_webhooks(client, admin_client, fake_stripe):
    org = admin_client.get("/api/organizations").json

    r = _signed(
        client,
        {
            "type": "checkout.session.completed",
            "data": {"object": {"metadata": {"organization_id": str(org["id"])}, "customer": "cus_1", "subscription": "sub_1"}},
        },
    )
    assert r.status_code == 200
    assert r.json == {"received": True}
    assert fake_stripe.calls == [("retrieve_subscription", "sub_1")]

    org = admin_client.get("/api/organizations").json
    assert org["plan"] == "professional"
    assert org["stripe_customer_id"] == "cus_1"
    assert org["plan_expires_at"] == "2026-01-01T00:00:00"

    summary = admin_client.get("/api/billing").json
    assert summary["subscription_status"] == "active"
    assert summary["current_period_end"] == "2026-01-01T00:00:00"

    r = _signed(client, {"type": "customer.subscription.deleted", "data": {"object": {"id": "sub_1", "customer": "cus_1"}}})
    assert r.status_code == 200
    org = admin_client.get("/api/organizations").json
    assert org["plan"] == "free"
    assert org["stripe_subscription_id"] is None


def test_subscription_update_to_unpaid_downgrades(client, admin_client, fake_stripe):
    org_id = admin_client.get("/api/organizations").json["id"]
    _signed(
        client,
        {
            "type": "checkout.session.completed",
            "data": {"object": {"metadata": {"organization_id": str(org_id)}, "customer": "cus_9", "subscription": "sub_9"}},
        },
    )
    r = _signed(
        client,
        {
            "type": "customer.subscription.updated",
            "data": {"object": {"id": "sub_9", "customer": "cus_9", "status": "unpaid", "items": {"data": []}}},
        },
    )
    assert r.status_code == 200
    assert admin_client.get("/api/organizations").json["plan"] == "free"


def test_unknown_events_are_acknowledged(client):
    r = _signed(client, {"type": "customer.created", "data": {"object": {}}})
    assert r.status_code == 200


def test_checkout_and_portal_actions(admin_client, fake_stripe):
    r = admin_client.post("/api/billing", json={"action": "checkout", "price_id": "price_pro"})
    assert r.status_code == 200
    assert r.json["url"] == "https://checkout.stripe.test/c/sess_1"
    _, params = fake_stripe.calls[-1]
    assert params["customer_email"] == "safety@acme.test"
    assert params["line_items"] == [{"price": "price_pro", "quantity": 1}]
    assert params["success_url"] == "https://app.safework.test/billing?success=true"

    assert admin_client.post("/api/billing", json={"action": "checkout"}).status_code == 400
    assert admin_client.post("/api/billing", json={"action": "refund"}).status_code == 400
    # no customer yet
    assert admin_client.post("/api/billing", json={"action": "portal"}).status_code == 400

    fake_stripe.fail = True
    r = admin_client.post("/api/billing", json={"action": "checkout", "price_id": "price_pro"})
    assert r.status_code == 502
