# backend/app/routes/system.py
"""
System health and version endpoints.

Health covers the database, the session table and the plan catalog, plus
whether the FREE FOR LIFE threshold is configured.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import Plan, SessionToken, Merchant
from app.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Database connectivity and basic queries."""
    start_time = time.time()
    try:
        merchant_count = db.session.query(Merchant).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "merchants": merchant_count,
                "active_sessions": active_sessions,
            },
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_billing_health() -> dict:
    """Plans seeded and threshold configured; either missing degrades the service."""
    try:
        plan_count = db.session.query(Plan).filter(Plan.is_active.is_(True)).count()
    except Exception:
        current_app.logger.exception("Billing health check failed")
        return {"status": "unhealthy", "error": "Plan catalog error"}

    threshold = current_app.config.get("FREE_FOR_LIFE_THRESHOLD_CENTS")
    warnings = []
    if plan_count == 0:
        warnings.append("No active plans; run 'flask plans seed'")
    if threshold is None:
        warnings.append("FREE_FOR_LIFE_THRESHOLD_CENTS is not configured")

    result = {
        "status": "degraded" if warnings else "healthy",
        "details": {"active_plans": plan_count, "threshold_configured": threshold is not None},
    }
    if warnings:
        result["warning"] = "; ".join(warnings)
    return result


@system_bp.get("/health")
def health():
    """
    Health check.

    Returns:
    - 200: healthy or degraded
    - 503: one or more checks unhealthy
    """
    start_time = time.time()
    checks = {
        "database": check_database_health(),
        "billing": check_billing_health(),
    }

    statuses = [c["status"] for c in checks.values()]
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": checks,
    }, http_status


@system_bp.get("/version")
def version():
    """Non-sensitive deployment information."""
    import sys

    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": utcnow().isoformat() + "Z",
    }
