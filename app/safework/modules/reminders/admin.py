from __future__ import annotations

import hmac

from flask import Blueprint, current_app, jsonify, request

from app.safework.db import db_session
from app.safework.errors import ApiError
from app.safework.modules.reminders.service import run_reminders

bp = Blueprint("reminders", __name__)


def _authorized() -> bool:
    secret = (current_app.config.get("CRON_SECRET") or "").strip()
    if not secret:
        return False
    header = request.headers.get("Authorization") or ""
    return hmac.compare_digest(header, f"Bearer {secret}")


@bp.get("/cron/reminders")
def cron_reminders():
    if not _authorized():
        raise ApiError("Unauthorized", 401)
    s = db_session()
    return jsonify(run_reminders(s, current_app.config))
