"""
Gemba Issue Tracker
Analytics & AI Blueprint.

Routes:
    GET  /api/v1/analytics/dashboard                  level 2
    GET  /api/v1/analytics/issues/breakdown           level 2
    GET  /api/v1/analytics/issues/resolution-times    level 3
    POST /api/v1/ai/query                             level 2  (60/minute)
    POST /api/v1/ai/report                            level 3  (30/minute)
"""

import logging

from flask import Blueprint, request

import gemba.services.analytics_service as svc
from gemba.auth import require_role
from gemba.blueprints import json_body
from gemba.utils.response import success

logger = logging.getLogger(__name__)

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/v1")

# ── Rate limiting ─────────────────────────────────────────────────────────
from gemba import limiter  # noqa: E402

_ai_report_limit = limiter.shared_limit("30/minute", scope="ai_report")
_ai_query_limit = limiter.shared_limit("60/minute", scope="ai_query")


@analytics_bp.route("/analytics/dashboard", methods=["GET"])
@require_role(2)
def dashboard():
    return success(svc.dashboard())


@analytics_bp.route("/analytics/issues/breakdown", methods=["GET"])
@require_role(2)
def category_breakdown():
    return success(svc.category_breakdown())


@analytics_bp.route("/analytics/issues/resolution-times", methods=["GET"])
@require_role(3)
def resolution_times():
    return success(svc.resolution_times(
        request.args.get("from_date"),
        request.args.get("to_date"),
    ))


@analytics_bp.route("/ai/query", methods=["POST"])
@_ai_query_limit
@require_role(2)
def ai_query():
    """Keyword search over issue titles and descriptions."""
    data = json_body()
    return success(svc.search_issues(data.get("question")))


@analytics_bp.route("/ai/report", methods=["POST"])
@_ai_report_limit
@require_role(3)
def ai_report():
    """Narrative report: resolution-times, category-breakdown or escalation-analysis."""
    data = json_body()
    return success(svc.generate_report(
        data.get("report_type"),
        data.get("from_date"),
        data.get("to_date"),
    ))
