from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request, send_file

from app.safework.audit import record_event
from app.safework.auth import current_organization, current_user
from app.safework.db import db_session
from app.safework.errors import ApiError, json_body
from app.safework.modules.documents.service import (
    generate_document,
    get_document,
    list_documents,
    serialize_document,
    upload_document,
)
from app.safework.rbac import require_permission
from app.safework.storage import StorageError, storage_from_config

bp = Blueprint("documents", __name__)


@bp.get("/documents")
@require_permission("documents.view")
def documents_list():
    s = db_session()
    org = current_organization(s)
    doc_type = (request.args.get("type") or "").strip() or None
    return jsonify([serialize_document(d) for d in list_documents(s, org, doc_type)])


@bp.post("/documents")
@require_permission("documents.generate")
def documents_upload():
    s = db_session()
    u = current_user()
    org = current_organization(s)
    doc = upload_document(s, org, request.files.get("file"), request.form.get("type"), u, current_app.config)
    s.commit()
    return jsonify(serialize_document(doc)), 201


@bp.post("/documents/generate/<doc_type>")
@require_permission("documents.generate")
def documents_generate(doc_type: str):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    payload = json_body()
    doc = generate_document(s, org, doc_type, payload, u, current_app.config)
    s.commit()
    return jsonify(serialize_document(doc)), 201


@bp.get("/documents/<int:document_id>/download")
@require_permission("documents.view")
def document_download(document_id: int):
    s = db_session()
    u = current_user()
    org = current_organization(s)
    doc = get_document(s, org, document_id)

    storage = storage_from_config(current_app.config)
    try:
        fobj = storage.open(doc.storage_key)
    except StorageError as e:
        current_app.logger.error("Document %s missing from storage: %s", doc.id, e)
        raise ApiError("Stored file not found", 404)

    record_event(
        s,
        actor=u,
        action="document.download",
        entity_type="GeneratedDocument",
        entity_id=str(doc.id),
        metadata={"type": doc.type, "file_name": doc.file_name},
    )
    s.commit()
    return send_file(fobj, mimetype=doc.content_type, as_attachment=True, download_name=doc.file_name, max_age=0)
