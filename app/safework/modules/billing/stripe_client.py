from __future__ import annotations

import hashlib
import hmac
import json
import time
import urllib.error
import urllib.parse
import urllib.request
from dataclasses import dataclass
from typing import Any

SIGNATURE_TOLERANCE_SECONDS = 300


class StripeError(RuntimeError):
    pass


class StripeRateLimited(StripeError):
    pass


class SignatureVerificationError(StripeError):
    pass


def _flatten(params: dict[str, Any], prefix: str = "") -> list[tuple[str, str]]:
    """Stripe form encoding: nested dicts/lists become key[sub][0]=value."""
    out: list[tuple[str, str]] = []
    for k, v in params.items():
        key = f"{prefix}[{k}]" if prefix else str(k)
        if v is None:
            continue
        if isinstance(v, dict):
            out.extend(_flatten(v, key))
        elif isinstance(v, (list, tuple)):
            for i, item in enumerate(v):
                if isinstance(item, dict):
                    out.extend(_flatten(item, f"{key}[{i}]"))
                else:
                    out.append((f"{key}[{i}]", str(item)))
        elif isinstance(v, bool):
            out.append((key, "true" if v else "false"))
        else:
            out.append((key, str(v)))
    return out


@dataclass(frozen=True)
class StripeClient:
    secret_key: str
    base_url: str = "https://api.stripe.com/v1"
    timeout_seconds: int = 30

    def request_json(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        retries: int = 3,
    ) -> dict[str, Any]:
        if not self.secret_key:
            raise StripeError("STRIPE_SECRET_KEY is not configured")
        url = self.base_url.rstrip("/") + path
        data = None
        if params and method == "GET":
            url += "?" + urllib.parse.urlencode(_flatten(params))
        elif params:
            data = urllib.parse.urlencode(_flatten(params)).encode("utf-8")

        last_err: Exception | None = None
        for attempt in range(retries + 1):
            try:
                req = urllib.request.Request(url, data=data, method=method)
                req.add_header("Authorization", f"Bearer {self.secret_key}")
                req.add_header("Accept", "application/json")
                if data is not None:
                    req.add_header("Content-Type", "application/x-www-form-urlencoded")
                with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                    raw = resp.read()
                    try:
                        return json.loads(raw.decode("utf-8"))
                    except ValueError as e:
                        raise StripeError(f"Invalid JSON from Stripe ({path})") from e
            except urllib.error.HTTPError as e:
                if e.code == 429:
                    # rate limit; brief backoff
                    time.sleep(min(2 * (attempt + 1), 10))
                    last_err = StripeRateLimited("Rate limited (429)")
                    continue
                body = e.read().decode("utf-8", errors="ignore")
                raise StripeError(f"HTTP {e.code} from Stripe: {body[:300]}") from e
            except (urllib.error.URLError, TimeoutError) as e:
                last_err = e
                time.sleep(min(1 * (attempt + 1), 5))
                continue
        raise StripeError(f"Stripe request failed after retries: {last_err}")

    def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        return self.request_json("GET", f"/subscriptions/{urllib.parse.quote(str(subscription_id))}")

    def create_checkout_session(self, params: dict[str, Any]) -> dict[str, Any]:
        return self.request_json("POST", "/checkout/sessions", params=params, retries=1)

    def create_portal_session(self, *, customer: str, return_url: str) -> dict[str, Any]:
        return self.request_json(
            "POST", "/billing_portal/sessions", params={"customer": customer, "return_url": return_url}, retries=1
        )


def client_from_config(config: dict) -> StripeClient:
    return StripeClient(secret_key=(config.get("STRIPE_SECRET_KEY") or "").strip())


def compute_signature(payload: bytes, timestamp: int | str, secret: str) -> str:
    signed = f"{timestamp}.".encode("utf-8") + payload
    return hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()


def construct_event(
    payload: bytes,
    sig_header: str | None,
    secret: str,
    *,
    tolerance: int = SIGNATURE_TOLERANCE_SECONDS,
    now: float | None = None,
) -> dict[str, Any]:
    """
    Verify a Stripe-Signature header (t=...,v1=...) and parse the event body.
    Raises SignatureVerificationError on any mismatch.
    """
    if not sig_header:
        raise SignatureVerificationError("Missing stripe-signature header")
    timestamp = None
    signatures: list[str] = []
    for part in sig_header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t":
            timestamp = value
        elif key == "v1":
            signatures.append(value)
    if not timestamp or not signatures:
        raise SignatureVerificationError("Malformed stripe-signature header")
    try:
        ts = int(timestamp)
    except ValueError:
        raise SignatureVerificationError("Malformed stripe-signature timestamp")

    expected = compute_signature(payload, ts, secret)
    if not any(hmac.compare_digest(expected, sig) for sig in signatures):
        raise SignatureVerificationError("No signatures found matching the expected signature")
    current = time.time() if now is None else now
    if abs(current - ts) > tolerance:
        raise SignatureVerificationError("Timestamp outside the tolerance zone")

    try:
        event = json.loads(payload.decode("utf-8"))
    except ValueError as e:
        raise SignatureVerificationError("Invalid JSON payload") from e
    if not isinstance(event, dict):
        raise SignatureVerificationError("Invalid event payload")
    return event
