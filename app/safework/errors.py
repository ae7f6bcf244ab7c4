from __future__ import annotations

from typing import Any

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException


class ApiError(Exception):
    """Raised from services/handlers; rendered as {"error": message, **extra}."""

    def __init__(self, message: str, status_code: int = 400, **extra: Any) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.extra = extra

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.message}
        body.update(self.extra)
        return body


class ValidationError(ApiError):
    def __init__(self, errors: list[str]) -> None:
        super().__init__(errors[0], 400, errors=errors)


def raise_for_errors(errors: list[str]) -> None:
    if errors:
        raise ValidationError(errors)


def json_body() -> dict:
    """Request JSON as a dict. Missing or unparsable bodies read as empty; other JSON values are rejected."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ApiError("Request body must be a JSON object")
    return data


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def _api_error(e: ApiError):  # type: ignore[no-redef]
        if e.status_code >= 500:
            app.logger.error("API error %s: %s (request_id=%s)", e.status_code, e.message, getattr(g, "request_id", None))
        return jsonify(e.to_dict()), e.status_code

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            app.logger.warning("Forbidden: missing_permission=%s request_id=%s", missing, getattr(g, "request_id", None))
        return jsonify({"error": "Forbidden"}), 403

    @app.errorhandler(413)
    def _err_413(e):  # type: ignore[no-redef]
        return jsonify({"error": "File too large. Maximum size is 25MB."}), 413

    @app.errorhandler(HTTPException)
    def _err_http(e: HTTPException):  # type: ignore[no-redef]
        return jsonify({"error": e.description or e.name}), e.code or 500

    @app.errorhandler(500)
    def _err_500(e):  # type: ignore[no-redef]
        rid = getattr(g, "request_id", None)
        app.logger.exception("Unhandled 500 (request_id=%s)", rid)
        return jsonify({"error": "Internal server error", "request_id": rid}), 500
