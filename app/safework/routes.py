from flask import Blueprint

bp = Blueprint("routes", __name__)


@bp.get("/health")
def health():
    """Health check endpoint. Returns JSON."""
    return {"ok": True, "service": "safeworkca"}


@bp.get("/healthz")
def healthz():
    """
    Fast health check for load balancer probes. No DB access.
    """
    return "ok", 200
