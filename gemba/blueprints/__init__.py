"""
Gemba Issue Tracker
Blueprint registry.
"""

from flask import request

from gemba.core.exceptions import ValidationError


def page_args(default_per_page=20, max_per_page=100):
    """Read page/per_page query params.

    Query params:
        page     - 1-based page number (default 1)
        per_page - items per page (default 20, capped at max_per_page)

    Returns:
        (page, per_page)
    """
    try:
        page = max(int(request.args.get("page", 1)), 1)
    except (ValueError, TypeError):
        page = 1
    try:
        per_page = min(max(int(request.args.get("per_page", default_per_page)), 1), max_per_page)
    except (ValueError, TypeError):
        per_page = default_per_page
    return page, per_page


def json_body() -> dict:
    """Request JSON object, or {} when the body is empty.

    A body that is present but not a JSON object is a validation error.
    """
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data
