from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from app.safework.auth import current_organization, current_user
from app.safework.db import db_session
from app.safework.errors import ApiError, json_body
from app.safework.modules.billing import stripe_client
from app.safework.modules.billing.service import billing_action, billing_summary, handle_event
from app.safework.rbac import require_permission

bp = Blueprint("billing", __name__)


@bp.get("/billing")
@require_permission("billing.manage")
def billing_get():
    s = db_session()
    org = current_organization(s)
    return jsonify(billing_summary(org, stripe_client.client_from_config(current_app.config)))


@bp.post("/billing")
@require_permission("billing.manage")
def billing_post():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    payload = json_body()
    client = stripe_client.client_from_config(current_app.config)
    try:
        url = billing_action(s, org, payload, u, client, current_app.config)
    except stripe_client.StripeError as e:
        current_app.logger.error("Stripe %s failed (org=%s): %s", payload.get("action"), org.id, e)
        raise ApiError("Billing provider request failed", 502)
    s.commit()
    return jsonify({"url": url})


@bp.post("/webhooks/stripe")
def stripe_webhook():
    secret = (current_app.config.get("STRIPE_WEBHOOK_SECRET") or "").strip()
    if not secret:
        current_app.logger.error("STRIPE_WEBHOOK_SECRET is not set")
        raise ApiError("Webhook secret not configured", 500)

    try:
        event = stripe_client.construct_event(
            request.get_data(), request.headers.get("Stripe-Signature"), secret
        )
    except stripe_client.SignatureVerificationError as e:
        current_app.logger.warning("Stripe webhook signature verification failed: %s", e)
        if not request.headers.get("Stripe-Signature"):
            raise ApiError("Missing stripe-signature header")
        raise ApiError("Invalid signature")

    s = db_session()
    try:
        event_type = handle_event(s, event, stripe_client.client_from_config(current_app.config), current_app.config)
    except stripe_client.StripeError as e:
        s.rollback()
        current_app.logger.error("Stripe webhook handler error (%s): %s", event.get("type"), e)
        raise ApiError("Webhook processing failed", 500)
    s.commit()
    current_app.logger.info("Stripe webhook processed: %s", event_type)
    return jsonify({"received": True})
