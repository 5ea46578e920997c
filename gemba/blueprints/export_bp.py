"""
Gemba Issue Tracker
Export Blueprint.

    GET /api/v1/export/issues   level 2, JSON file download

Accepts the same filters as GET /api/v1/issues and returns every matching
issue (unpaginated) as a bare JSON array, served as an attachment.
"""

import json
import logging

from flask import Blueprint, Response, request

import gemba.services.issue_lifecycle as svc
from gemba.auth import require_role
from gemba.blueprints.issue_bp import LIST_FILTERS

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1/export")

EXPORT_FILENAME = "issues-export.json"


@export_bp.route("/issues", methods=["GET"])
@require_role(2)
def export_issues():
    """Download filtered issues as JSON."""
    filters = {key: request.args.get(key) for key in LIST_FILTERS if request.args.get(key)}
    rows = svc.export_issues(filters)
    return Response(
        json.dumps(rows, indent=2, ensure_ascii=False),
        mimetype="application/json",
        headers={"Content-Disposition": f"attachment; filename={EXPORT_FILENAME}"},
    )
