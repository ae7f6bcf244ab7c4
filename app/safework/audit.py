import json
from typing import Any

from flask import g, has_request_context, request
from sqlalchemy.orm import Session

from app.safework.models import AuditEvent, User


def record_event(
    s: Session,
    *,
    actor: User | None,
    action: str,
    entity_type: str | None = None,
    entity_id: str | None = None,
    reason: str | None = None,
    metadata: dict[str, Any] | None = None,
    request_id: str | None = None,
    organization_id: int | None = None,
) -> AuditEvent:
    """
    Append-only audit event helper.
    organization_id defaults to the actor's organization.
    """
    in_request = has_request_context()
    rid = request_id or (getattr(g, "request_id", None) if in_request else None)
    if organization_id is None and actor is not None:
        organization_id = actor.organization_id
    ev = AuditEvent(
        request_id=rid,
        organization_id=organization_id,
        actor_user_id=actor.id if actor else None,
        actor_user_email=actor.email if actor else None,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        reason=reason,
        metadata_json=json.dumps(metadata, sort_keys=True, default=str) if metadata else None,
        client_ip=request.remote_addr if in_request else None,
    )
    s.add(ev)
    return ev


def serialize_event(ev: AuditEvent) -> dict[str, Any]:
    return {
        "id": ev.id,
        "created_at": ev.created_at.isoformat() if ev.created_at else None,
        "action": ev.action,
        "entity_type": ev.entity_type,
        "entity_id": ev.entity_id,
        "actor": ev.actor_user_email,
        "reason": ev.reason,
        "metadata": json.loads(ev.metadata_json) if ev.metadata_json else None,
    }
