# backend/backoffice/routes/system.py
"""
System health endpoint.

Reports database reachability and the backlog of cash movements waiting to
be re-posted. A backlog marks the service degraded, not down: sales keep
working while the cash ledger catches up.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Tenant, Order, PostingFailure, POSTING_STATUS_PENDING, POSTING_STATUS_ABANDONED
from backoffice.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        tenant_count = db.session.query(Tenant).count()
        order_count = db.session.query(Order).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "tenants": tenant_count,
                "orders": order_count,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_posting_backlog() -> dict:
    try:
        pending = db.session.query(PostingFailure).filter_by(status=POSTING_STATUS_PENDING).count()
        abandoned = db.session.query(PostingFailure).filter_by(status=POSTING_STATUS_ABANDONED).count()
    except Exception:
        current_app.logger.exception("Posting backlog check failed")
        return {"status": "unhealthy", "error": "Database error"}

    return {
        "status": "degraded" if (pending or abandoned) else "healthy",
        "details": {
            "pending": pending,
            "abandoned": abandoned,
        }
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    posting_health = check_posting_backlog()

    all_checks = [database_health, posting_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    response = {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "cash_postings": posting_health,
        }
    }
    return response, http_status
