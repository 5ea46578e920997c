"""
Gemba Issue Tracker
Issue Blueprint.

HTTP boundary for the issue lifecycle. Handlers parse the request, call
gemba.services.issue_lifecycle and wrap the result in the response
envelope; domain exceptions are mapped by gemba.utils.errors.

Routes:
    GET    /api/v1/issues                     level 1  (paginated)
    GET    /api/v1/issues/stats               level 2
    GET    /api/v1/issues/<id>                level 1
    POST   /api/v1/issues                     level 1
    PUT    /api/v1/issues/<id>                level 1
    POST   /api/v1/issues/<id>/escalate       level 1
    POST   /api/v1/issues/<id>/resolve        level 2
    DELETE /api/v1/issues/<id>                admin
    GET    /api/v1/issues/<id>/history        level 2
    POST   /api/v1/issues/bulk-create         admin
    POST   /api/v1/issues/bulk-update         admin
    POST   /api/v1/issues/bulk-delete         admin
"""

import logging

from flask import Blueprint, request

import gemba.services.issue_lifecycle as svc
from gemba.auth import ADMIN_LEVEL, current_user_id, require_role
from gemba.blueprints import json_body, page_args
from gemba.utils.response import paginated, success

logger = logging.getLogger(__name__)

issue_bp = Blueprint("issues", __name__, url_prefix="/api/v1/issues")

LIST_FILTERS = ("status", "level", "category_id", "priority", "area_id", "search", "from_date", "to_date")


@issue_bp.route("", methods=["GET"])
@require_role(1)
def list_issues():
    """List issues with filtering, pagination and sorting."""
    page, per_page = page_args(svc.DEFAULT_PER_PAGE, svc.MAX_PER_PAGE)
    filters = {key: request.args.get(key) for key in LIST_FILTERS if request.args.get(key)}
    items, total = svc.list_issues(
        filters,
        page=page,
        per_page=per_page,
        sort_by=request.args.get("sort_by", "created_at"),
        sort_order=request.args.get("sort_order", "desc"),
    )
    return paginated(items, page, per_page, total)


@issue_bp.route("/stats", methods=["GET"])
@require_role(2)
def issue_stats():
    return success(svc.compute_issue_stats())


@issue_bp.route("/<issue_id>", methods=["GET"])
@require_role(1)
def get_issue(issue_id):
    return success(svc.get_issue(issue_id))


@issue_bp.route("", methods=["POST"])
@require_role(1)
def create_issue():
    """Create an issue; the stored suggestion is returned alongside it."""
    issue, suggestion = svc.create_issue(json_body(), current_user_id())
    result = issue.to_dict()
    result["ai_suggestion"] = suggestion.to_dict()
    return success(result, status=201)


@issue_bp.route("/<issue_id>", methods=["PUT"])
@require_role(1)
def update_issue(issue_id):
    issue = svc.update_issue(issue_id, json_body(), current_user_id())
    return success(issue.to_dict())


@issue_bp.route("/<issue_id>/escalate", methods=["POST"])
@require_role(1)
def escalate_issue(issue_id):
    data = json_body()
    issue, escalation = svc.escalate_issue(
        issue_id, data.get("target_level"), data.get("reason"), current_user_id(),
    )
    return success({"issue": issue.to_dict(), "escalation": escalation.to_dict()})


@issue_bp.route("/<issue_id>/resolve", methods=["POST"])
@require_role(2)
def resolve_issue(issue_id):
    issue, resolution = svc.resolve_issue(issue_id, json_body(), current_user_id())
    return success({"issue": issue.to_dict(), "resolution": resolution.to_dict()})


@issue_bp.route("/<issue_id>", methods=["DELETE"])
@require_role(ADMIN_LEVEL)
def delete_issue(issue_id):
    svc.delete_issue(issue_id)
    return success({"id": issue_id, "message": "Issue deleted successfully"})


@issue_bp.route("/<issue_id>/history", methods=["GET"])
@require_role(2)
def issue_history(issue_id):
    """Escalation trail (oldest first) and resolution."""
    return success(svc.get_history(issue_id))


# ── Bulk operations (admin) ──────────────────────────────────────────────


@issue_bp.route("/bulk-create", methods=["POST"])
@require_role(ADMIN_LEVEL)
def bulk_create_issues():
    """Create ``items`` in one transaction; any invalid item rejects the batch."""
    created = svc.bulk_create_issues(json_body().get("items"), current_user_id())
    items = []
    for issue, suggestion in created:
        row = issue.to_dict()
        row["ai_suggestion"] = suggestion.to_dict()
        items.append(row)
    return success({"created": len(items), "items": items}, status=201)


@issue_bp.route("/bulk-update", methods=["POST"])
@require_role(ADMIN_LEVEL)
def bulk_update_issues():
    return success(svc.bulk_update_issues(json_body().get("items"), current_user_id()))


@issue_bp.route("/bulk-delete", methods=["POST"])
@require_role(ADMIN_LEVEL)
def bulk_delete_issues():
    return success(svc.bulk_delete_issues(json_body().get("ids")))
