# backend/marketplace/routes/system.py
"""
System routes: health check and public access to uploaded files.
"""

import os
import time

from flask import Blueprint, current_app, send_from_directory, abort
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Order, Product, Profile
from ..services import storage_service
from ..services.settings_service import get_admin_settings
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """Run a few cheap counts against the core tables."""
    start_time = time.time()
    try:
        details = {
            "profiles": db.session.query(Profile).count(),
            "products": db.session.query(Product).count(),
            "orders": db.session.query(Order).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_email_health() -> dict:
    """Email is best effort, so a missing API key only degrades the service."""
    config = current_app.config
    if not config.get("EMAIL_NOTIFICATIONS_ENABLED", True):
        return {"status": "healthy", "details": {"enabled": False}}

    try:
        admin_enabled = get_admin_settings().email_notifications_enabled
    except SQLAlchemyError:
        current_app.logger.exception("Email health check could not read admin settings")
        admin_enabled = None

    details = {
        "enabled": True,
        "admin_notifications_enabled": admin_enabled,
        "provider_url": config.get("EMAIL_API_URL"),
    }
    if not config.get("RESEND_API_KEY"):
        return {
            "status": "degraded",
            "warning": "RESEND_API_KEY is not set; emails will not be delivered",
            "details": details,
        }
    return {"status": "healthy", "details": details}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    email_health = check_email_health() if database_health["status"] == "healthy" else {"status": "unknown"}

    all_checks = [database_health, email_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "email": email_health,
        }
    }, http_status


@system_bp.get("/uploads/<bucket>/<path:filename>")
def uploaded_file(bucket: str, filename: str):
    if bucket not in storage_service.VALID_BUCKETS:
        abort(404)
    return send_from_directory(os.path.join(storage_service.upload_root(), bucket), filename)
