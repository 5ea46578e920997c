"""
Gemba Issue Tracker
Role-level authorization.

Every /api/v1 endpoint except /health is gated by a minimum numeric role
level carried in the JWT (see gemba.middleware.jwt_auth):

    1  operator      - raise and escalate issues
    2  team lead     - resolve, search, history, dashboards
    3  manager       - narrative reports, resolution-time analytics
    99 admin         - delete issues

Usage:
    @issue_bp.route("/issues/<issue_id>/resolve", methods=["POST"])
    @require_role(2)
    def resolve_issue(issue_id): ...
"""

import functools
import logging

from flask import g, request

from gemba.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ADMIN_LEVEL = 99


def current_user():
    """Return the authenticated user dict, or None outside an authenticated request."""
    return getattr(g, "current_user", None)


def current_user_id():
    user = current_user()
    return user["id"] if user else None


def require_role(min_level: int):
    """
    Decorator: require an authenticated user with role_level >= min_level.

    Missing token → 401 UNAUTHORIZED, bad/expired token → 401 INVALID_TOKEN,
    level too low → 403 FORBIDDEN.
    """
    def decorator(f):
        @functools.wraps(f)
        def decorated(*args, **kwargs):
            user = current_user()
            if user is None:
                if getattr(g, "auth_error", None) == E.INVALID_TOKEN:
                    return api_error(E.INVALID_TOKEN, "Invalid or expired token")
                return api_error(E.UNAUTHORIZED, "Authentication token is required")

            if user["role_level"] < min_level:
                logger.warning(
                    "Access denied: user %s (level %s) tried level-%s endpoint %s",
                    user["id"], user["role_level"], min_level, request.path,
                )
                return api_error(E.FORBIDDEN, "Insufficient permissions")

            return f(*args, **kwargs)
        return decorated
    return decorator
