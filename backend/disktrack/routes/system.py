# backend/disktrack/routes/system.py
"""
System health endpoint.

Checks the database and the bill upload folder. 503 when any check is
unhealthy.
"""

import os
import time

from flask import Blueprint, current_app

from ..extensions import db
from ..models import Unit
from disktrack.time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        unit_count = db.session.query(Unit).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"units": unit_count},
        }
    except Exception:
        db.session.rollback()
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


def check_upload_folder_health() -> dict:
    folder = current_app.config["UPLOAD_FOLDER"]
    if not os.path.isdir(folder):
        # Created lazily on the first upload
        return {"status": "degraded", "warning": "Upload folder does not exist yet"}
    if not os.access(folder, os.W_OK):
        return {"status": "unhealthy", "error": "Upload folder is not writable"}
    return {"status": "healthy"}


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: at least one check unhealthy
    """
    start_time = time.time()

    database_health = check_database_health()
    upload_health = check_upload_folder_health()

    all_checks = [database_health, upload_health]
    if any(c["status"] == "unhealthy" for c in all_checks):
        overall_status, http_status = "unhealthy", 503
    elif any(c["status"] == "degraded" for c in all_checks):
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "success": http_status == 200,
        "message": f"Service {overall_status}",
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "uploads": upload_health,
        },
    }, http_status
