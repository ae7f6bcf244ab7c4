from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from app.safework.audit import record_event
from app.safework.errors import ApiError
from app.safework.modules.billing.stripe_client import StripeClient, StripeError
from app.safework.utils import iso

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.models import User
    from app.safework.modules.organizations.models import Organization

logger = logging.getLogger(__name__)

INACTIVE_SUBSCRIPTION_STATUSES = ("canceled", "unpaid")


def resolve_plan(price_id: str | None, config: dict) -> str:
    """Map a Stripe price id to a tier; unknown prices are treated as starter."""
    mapping = {
        config.get("STRIPE_STARTER_PRICE_ID"): "starter",
        config.get("STRIPE_PROFESSIONAL_PRICE_ID"): "professional",
        config.get("STRIPE_ENTERPRISE_PRICE_ID"): "enterprise",
    }
    mapping.pop("", None)
    mapping.pop(None, None)
    return mapping.get(price_id, "starter")


def _from_timestamp(value: Any) -> datetime | None:
    if value in (None, ""):
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc).replace(tzinfo=None)


def _first_item(subscription: dict) -> dict:
    items = ((subscription.get("items") or {}).get("data")) or []
    return items[0] if items and isinstance(items[0], dict) else {}


def _price_id(subscription: dict) -> str | None:
    return (_first_item(subscription).get("price") or {}).get("id")


def _period_end(subscription: dict) -> datetime | None:
    # Newer API versions carry the period on the subscription item
    return _from_timestamp(subscription.get("current_period_end") or _first_item(subscription).get("current_period_end"))


def billing_summary(org: "Organization", client: StripeClient) -> dict[str, Any]:
    out: dict[str, Any] = {
        "plan": org.plan or "free",
        "plan_expires_at": iso(org.plan_expires_at),
        "stripe_customer_id": org.stripe_customer_id,
        "stripe_subscription_id": org.stripe_subscription_id,
    }
    if org.stripe_subscription_id:
        try:
            sub = client.retrieve_subscription(org.stripe_subscription_id)
        except StripeError as e:
            logger.warning("Subscription lookup failed (org=%s): %s", org.id, e)
            out["subscription_status"] = None
        else:
            out["subscription_status"] = sub.get("status")
            out["cancel_at_period_end"] = bool(sub.get("cancel_at_period_end"))
            out["current_period_end"] = iso(_period_end(sub))
    return out


def billing_action(s: "Session", org: "Organization", payload: dict, user: "User", client: StripeClient, config: dict) -> str:
    """Create a Checkout or Customer Portal session; returns its URL."""
    action = payload.get("action")
    app_url = str(config.get("APP_URL") or "").rstrip("/")

    if action == "checkout":
        price_id = str(payload.get("price_id") or "").strip()
        if not price_id:
            raise ApiError("price_id is required for checkout")
        params: dict[str, Any] = {
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": f"{app_url}/billing?success=true",
            "cancel_url": f"{app_url}/billing?canceled=true",
            "metadata": {"organization_id": str(org.id)},
        }
        if org.stripe_customer_id:
            params["customer"] = org.stripe_customer_id
        else:
            params["customer_email"] = org.email
        session = client.create_checkout_session(params)
    elif action == "portal":
        if not org.stripe_customer_id:
            raise ApiError("No billing account found. Please subscribe first.")
        session = client.create_portal_session(customer=org.stripe_customer_id, return_url=f"{app_url}/billing")
    else:
        raise ApiError('Invalid action. Use "checkout" or "portal".')

    record_event(
        s,
        actor=user,
        action=f"billing.{action}",
        entity_type="Organization",
        entity_id=str(org.id),
        metadata={"price_id": payload.get("price_id")} if action == "checkout" else None,
    )
    return session.get("url") or ""


# Webhooks -----------------------------------------------------------------


def _org_by_customer(s: "Session", customer_id: str | None) -> "Organization | None":
    from app.safework.modules.organizations.models import Organization

    if not customer_id:
        return None
    return s.query(Organization).filter(Organization.stripe_customer_id == customer_id).one_or_none()


def _webhook_audit(s: "Session", org: "Organization", event_type: str, metadata: dict) -> None:
    record_event(
        s,
        actor=None,
        action=f"billing.webhook.{event_type}",
        entity_type="Organization",
        entity_id=str(org.id),
        metadata=metadata,
        organization_id=org.id,
    )


def _checkout_completed(s: "Session", obj: dict, client: StripeClient, config: dict) -> None:
    from app.safework.modules.organizations.models import Organization

    raw_org_id = (obj.get("metadata") or {}).get("organization_id")
    if not raw_org_id:
        logger.warning("checkout.session.completed without metadata.organization_id")
        return
    subscription_id = obj.get("subscription")
    if not subscription_id:
        return  # one-time payment
    org = s.get(Organization, int(raw_org_id))
    if not org:
        logger.warning("checkout.session.completed for unknown organization %s", raw_org_id)
        return

    sub = client.retrieve_subscription(subscription_id)
    org.stripe_customer_id = obj.get("customer")
    org.stripe_subscription_id = subscription_id
    org.plan = resolve_plan(_price_id(sub), config)
    org.plan_expires_at = _period_end(sub)
    _webhook_audit(s, org, "checkout_completed", {"plan": org.plan, "subscription_id": subscription_id})


def _subscription_updated(s: "Session", obj: dict, config: dict) -> None:
    org = _org_by_customer(s, obj.get("customer"))
    if not org:
        logger.warning("subscription.updated for unknown customer %s", obj.get("customer"))
        return
    org.plan = resolve_plan(_price_id(obj), config)
    org.plan_expires_at = _period_end(obj)
    if obj.get("status") in INACTIVE_SUBSCRIPTION_STATUSES:
        org.plan = "free"
        org.stripe_subscription_id = None
    _webhook_audit(s, org, "subscription_updated", {"plan": org.plan, "status": obj.get("status")})


def _subscription_deleted(s: "Session", obj: dict) -> None:
    org = _org_by_customer(s, obj.get("customer"))
    if not org:
        return
    org.plan = "free"
    org.stripe_subscription_id = None
    org.plan_expires_at = None
    _webhook_audit(s, org, "subscription_deleted", {"subscription_id": obj.get("id")})


def handle_event(s: "Session", event: dict, client: StripeClient, config: dict) -> str:
    """Apply a verified Stripe event. Returns the event type."""
    event_type = str(event.get("type") or "")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == "checkout.session.completed":
        _checkout_completed(s, obj, client, config)
    elif event_type == "customer.subscription.updated":
        _subscription_updated(s, obj, config)
    elif event_type == "customer.subscription.deleted":
        _subscription_deleted(s, obj)
    elif event_type == "invoice.payment_failed":
        logger.warning("Payment failed for customer %s, subscription %s", obj.get("customer"), obj.get("subscription"))
    else:
        logger.debug("Ignoring Stripe event %s", event_type)
    return event_type
