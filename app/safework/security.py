import hashlib
import hmac
import secrets

from flask import Request, session


def ensure_csrf_token() -> str:
    """Ensure a CSRF token exists in the session and return it."""
    token = session.get("csrf_token")
    if not token:
        token = secrets.token_urlsafe(32)
        session["csrf_token"] = token
    return token


def validate_csrf(req: Request) -> bool:
    """Validate the CSRF token from the X-CSRF-Token header (or a JSON body field)."""
    token = req.headers.get("X-CSRF-Token")
    if not token and req.is_json:
        json_data = req.get_json(silent=True) or {}
        if isinstance(json_data, dict):
            token = json_data.get("csrf_token")
    expected = session.get("csrf_token")
    return bool(token and expected and hmac.compare_digest(str(token), str(expected)))


def sha256_hex(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def new_token(nbytes: int = 32) -> str:
    """Random hex token (2 * nbytes characters)."""
    return secrets.token_hex(nbytes)


def token_matches(token: str | None, token_hash: str | None) -> bool:
    """Constant-time comparison of a presented token against its stored sha256."""
    if not token or not token_hash:
        return False
    return hmac.compare_digest(sha256_hex(token), token_hash)
