# Overview: Flask API routes for system health.

"""
System health endpoint.

Reports database connectivity and whether the sales table can carry a
sale (required columns and cashier attribution present).
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..errors import StructuralStorageMismatch
from ..models import Store
from ..services import schema_service
from pharmapos.time_utils import utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity with a basic query.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        store_count = db.session.query(Store).count()
        elapsed_ms = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {"stores": store_count},
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_sales_schema_health() -> dict:
    """
    Re-derive sales table capabilities.

    - unhealthy: a required column or any attribution column is missing
    - degraded: optional customer/doctor columns or canonical cashier_id missing
    """
    try:
        caps = schema_service.get_capabilities(refresh=True)
    except StructuralStorageMismatch as e:
        db.session.rollback()
        return {"status": "unhealthy", "error": str(e)}
    except Exception:
        current_app.logger.exception("Sales schema health check failed")
        db.session.rollback()
        return {"status": "unhealthy", "error": "Schema inspection error"}

    if caps.missing_required or caps.attribution_mode is None:
        status = "unhealthy"
    elif caps.missing_optional or caps.attribution_mode != schema_service.ATTRIBUTION_MODE_COLUMN:
        status = "degraded"
    else:
        status = "healthy"

    return {"status": status, "details": caps.to_dict()}


@system_bp.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
    - 200: healthy or degraded (still operational)
    - 503: database unreachable or sales table unusable
    """
    start_time = time.time()

    database_health = check_database_health()
    schema_health = check_sales_schema_health()

    all_checks = [database_health, schema_health]
    if any(check["status"] == "unhealthy" for check in all_checks):
        overall_status = "unhealthy"
        http_status = 503
    elif any(check["status"] == "degraded" for check in all_checks):
        overall_status = "degraded"
        http_status = 200
    else:
        overall_status = "healthy"
        http_status = 200

    total_elapsed_ms = (time.time() - start_time) * 1000

    response = {
        "status": overall_status,
        "timestamp": utcnow().isoformat() + "Z",
        "total_latency_ms": round(total_elapsed_ms, 2),
        "checks": {
            "database": database_health,
            "sales_schema": schema_health,
        }
    }

    return response, http_status
