from __future__ import annotations

import hashlib
import logging
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import func
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from app.safework.audit import record_event
from app.safework.errors import ApiError
from app.safework.storage import storage_from_config
from app.safework.utils import iso, parse_date, utcnow

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.safework.models import User
    from app.safework.modules.documents.models import GeneratedDocument
    from app.safework.modules.organizations.models import Organization

logger = logging.getLogger(__name__)

SUPPORTED_TYPES = ("incident_log", "training_certificate", "compliance_report", "wvpp")

# Generator name -> stored document type
STORED_TYPES = {
    "incident_log": "incident_log_export",
    "training_certificate": "training_certificate",
    "compliance_report": "compliance_report",
    "wvpp": "wvpp_full",
}

PDF = "application/pdf"


def file_digest(data: bytes) -> tuple[str, int]:
    return hashlib.sha256(data).hexdigest(), len(data)


def _name_part(value: str | None, fallback: str) -> str:
    return secure_filename(value or "") or fallback


def _date_param(payload: dict, key: str) -> date | None:
    try:
        return parse_date(payload.get(key))
    except ValueError:
        raise ApiError(f"{key} must be YYYY-MM-DD")


def _next_version(s: "Session", org: "Organization", doc_type: str) -> int:
    from app.safework.modules.documents.models import GeneratedDocument

    current = (
        s.query(func.max(GeneratedDocument.version))
        .filter(GeneratedDocument.organization_id == org.id, GeneratedDocument.type == doc_type)
        .scalar()
    )
    return (current or 0) + 1


def _store(
    s: "Session",
    org: "Organization",
    user: "User",
    app_config: dict,
    *,
    doc_type: str,
    file_name: str,
    data: bytes,
    content_type: str = PDF,
    action: str,
    **fields: Any,
) -> "GeneratedDocument":
    """Write bytes to storage and index them. A regenerated document is a new row (no overwrites)."""
    from app.safework.modules.documents.models import GeneratedDocument

    sha256, size_bytes = file_digest(data)
    now = utcnow()
    version = _next_version(s, org, doc_type)
    storage_key = f"organizations/{org.id}/documents/{doc_type}/v{version}_{now:%Y-%m-%dT%H-%M-%S}_{sha256[:12]}_{file_name}"
    storage_from_config(app_config).put_bytes(storage_key, data, content_type=content_type)

    doc = GeneratedDocument(
        organization_id=org.id,
        type=doc_type,
        file_name=file_name,
        storage_key=storage_key,
        content_type=content_type,
        size_bytes=size_bytes,
        sha256=sha256,
        version=version,
        generated_by_user_id=user.id,
        generated_at=now,
        created_at=now,
        **fields,
    )
    s.add(doc)
    s.flush()

    record_event(
        s,
        actor=user,
        action=action,
        entity_type="GeneratedDocument",
        entity_id=str(doc.id),
        metadata={"type": doc_type, "file_name": file_name, "sha256": sha256, "size_bytes": size_bytes},
    )
    logger.info("Stored %s document %s (org=%s bytes=%s)", doc_type, doc.id, org.id, size_bytes)
    return doc


def _incident_log(s: "Session", org: "Organization", payload: dict) -> tuple[bytes, str, dict]:
    from app.safework.modules.documents.pdf.incident_log import build_incident_log_pdf
    from app.safework.modules.incidents.models import Incident

    start = _date_param(payload, "start_date")
    end = _date_param(payload, "end_date")
    q = s.query(Incident).filter(Incident.organization_id == org.id)
    if start:
        q = q.filter(Incident.incident_date >= start)
    if end:
        q = q.filter(Incident.incident_date <= end)
    incidents = q.order_by(Incident.incident_date.desc(), Incident.id.desc()).all()

    data = build_incident_log_pdf(org, incidents, start, end)
    file_name = f"Incident-Log-{_name_part(org.name, 'Organization')}-{utcnow():%Y-%m-%d}.pdf"
    fields = {
        "date_range_start": start,
        "date_range_end": end,
        "metadata_json": {"incident_count": len(incidents), "start_date": iso(start), "end_date": iso(end)},
    }
    return data, file_name, fields


def _training_certificate(s: "Session", org: "Organization", payload: dict) -> tuple[bytes, str, dict]:
    from app.safework.modules.documents.pdf.training_certificate import build_training_certificate_pdf
    from app.safework.modules.employees.service import get_employee

    raw_id = payload.get("employee_id")
    if raw_id in (None, ""):
        raise ApiError("employee_id is required for training_certificate")
    try:
        employee_id = int(raw_id)
    except (TypeError, ValueError):
        raise ApiError("employee_id must be an integer")
    employee = get_employee(s, org, employee_id)

    completion = _date_param(payload, "completion_date")
    if completion is None:
        completion = employee.last_annual_training_completed_at or utcnow()

    data = build_training_certificate_pdf(org, employee, completion)
    name = _name_part(f"{employee.first_name}-{employee.last_name}", "Employee")
    fields = {
        "employee_id": employee.id,
        "metadata_json": {
            "employee_id": employee.id,
            "employee_name": employee.full_name,
            "completion_date": iso(completion),
        },
    }
    return data, f"Training-Certificate-{name}-{utcnow():%Y-%m-%d}.pdf", fields


def _compliance_report(s: "Session", org: "Organization", payload: dict) -> tuple[bytes, str, dict]:
    from app.safework.modules.dashboard.service import compliance_report_stats
    from app.safework.modules.documents.pdf.compliance_report import build_compliance_report_pdf

    scores, stats = compliance_report_stats(s, org)
    data = build_compliance_report_pdf(org, scores, stats)
    file_name = f"Compliance-Report-{_name_part(org.name, 'Organization')}-{utcnow():%Y-%m-%d}.pdf"
    return data, file_name, {"metadata_json": {"overall_score": scores["overall"], "scores": scores}}


def _wvpp(s: "Session", org: "Organization", payload: dict) -> tuple[bytes, str, dict]:
    from app.safework.modules.documents.pdf.wvpp import build_wvpp_pdf
    from app.safework.modules.plans.service import active_plan, get_plan

    raw_id = payload.get("plan_id")
    if raw_id not in (None, ""):
        try:
            plan = get_plan(s, org, int(raw_id))
        except (TypeError, ValueError):
            raise ApiError("plan_id must be an integer")
    else:
        plan = active_plan(s, org)
        if not plan:
            raise ApiError("No active plan found", 404)

    data = build_wvpp_pdf(org, plan)
    file_name = f"WVPP-{_name_part(org.name, 'Organization')}-v{plan.version}.pdf"
    return data, file_name, {"plan_version": plan.version, "metadata_json": {"plan_id": plan.id, "status": plan.status}}


_GENERATORS = {
    "incident_log": _incident_log,
    "training_certificate": _training_certificate,
    "compliance_report": _compliance_report,
    "wvpp": _wvpp,
}


def generate_document(
    s: "Session", org: "Organization", doc_type: str, payload: dict, user: "User", app_config: dict
) -> "GeneratedDocument":
    if doc_type not in SUPPORTED_TYPES:
        raise ApiError(
            f"Unsupported document type: {doc_type}. Supported: {', '.join(SUPPORTED_TYPES)}",
            supported=list(SUPPORTED_TYPES),
        )
    data, file_name, fields = _GENERATORS[doc_type](s, org, payload)
    return _store(
        s,
        org,
        user,
        app_config,
        doc_type=STORED_TYPES[doc_type],
        file_name=file_name,
        data=data,
        action="document.generate",
        **fields,
    )


def upload_document(
    s: "Session", org: "Organization", f: FileStorage | None, doc_type: str | None, user: "User", app_config: dict
) -> "GeneratedDocument":
    from app.safework.modules.documents.models import DOCUMENT_TYPES

    doc_type = (doc_type or "uploaded").strip()
    if doc_type not in DOCUMENT_TYPES:
        raise ApiError(f"Invalid document type. Must be one of: {', '.join(DOCUMENT_TYPES)}")
    if not f or not f.filename:
        raise ApiError("Choose a file to upload.")
    data = f.read()
    if not data:
        raise ApiError("Uploaded file is empty.")
    return _store(
        s,
        org,
        user,
        app_config,
        doc_type=doc_type,
        file_name=secure_filename(f.filename) or "document.bin",
        data=data,
        content_type=(f.mimetype or "application/octet-stream").strip(),
        action="document.upload",
        metadata_json={"original_file_name": f.filename},
    )


def list_documents(s: "Session", org: "Organization", doc_type: str | None = None, limit: int = 100) -> list["GeneratedDocument"]:
    from app.safework.modules.documents.models import GeneratedDocument

    q = s.query(GeneratedDocument).filter(GeneratedDocument.organization_id == org.id)
    if doc_type:
        q = q.filter(GeneratedDocument.type == doc_type)
    return q.order_by(GeneratedDocument.created_at.desc(), GeneratedDocument.id.desc()).limit(limit).all()


def get_document(s: "Session", org: "Organization", document_id: int) -> "GeneratedDocument":
    from app.safework.modules.documents.models import GeneratedDocument

    doc = s.get(GeneratedDocument, document_id)
    if not doc or doc.organization_id != org.id:
        raise ApiError("Document not found", 404)
    return doc


def serialize_document(doc: "GeneratedDocument") -> dict:
    return {
        "id": doc.id,
        "type": doc.type,
        "file_name": doc.file_name,
        "content_type": doc.content_type,
        "size_bytes": doc.size_bytes,
        "sha256": doc.sha256,
        "version": doc.version,
        "plan_version": doc.plan_version,
        "generated_by_user_id": doc.generated_by_user_id,
        "generated_at": iso(doc.generated_at),
        "date_range_start": iso(doc.date_range_start),
        "date_range_end": iso(doc.date_range_end),
        "employee_id": doc.employee_id,
        "metadata": doc.metadata_json or {},
        "created_at": iso(doc.created_at),
    }
