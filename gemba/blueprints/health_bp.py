"""
Health check blueprint.

Endpoints:
    GET /api/v1/health  - no auth; app status plus a database round-trip
"""

import logging
import time

from flask import Blueprint
from sqlalchemy.exc import SQLAlchemyError

from gemba.models import db
from gemba.utils.response import success

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1")


@health_bp.route("/health", methods=["GET"])
def health():
    """Liveness check. Returns 503 when the database is unreachable."""
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        database = {"status": "ok", "latency_ms": round(db_ms, 1)}
        status = 200
    except SQLAlchemyError as exc:
        logger.error("Health check: database failed: %s", exc)
        db.session.rollback()
        database = {"status": "error"}
        status = 503

    return success(
        {"status": "ok" if status == 200 else "degraded", "checks": {"database": database}},
        status=status,
    )
