"""
Rate limiting configuration.

The Limiter instance is created in gemba/__init__.py with no default limits;
the AI endpoints carry their own shared limits (see analytics_bp) and this
module applies the coarse per-blueprint limits.

Usage:
    from gemba.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

from flask import g, request as flask_request

logger = logging.getLogger(__name__)

ISSUE_API_LIMIT = "300/minute"


def rate_limit_key():
    """Authenticated user id when known, else remote IP."""
    user = getattr(g, "current_user", None)
    if user:
        return f"user:{user['id']}"
    return flask_request.remote_addr or "unknown"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per user, falling back to remote IP):
        - /issues, /analytics, /export blueprints: 300/minute each
        - /ai/query 60/minute, /ai/report 30/minute (shared limits on the routes)
        - Health check: exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        logger.info("Rate limiter disabled (TESTING=True)")
        return

    for bp_name in ("issues", "analytics", "export"):
        bp = app.blueprints.get(bp_name)
        if bp:
            limiter.limit(ISSUE_API_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    logger.info("Rate limiter configured. API: %s, AI query: 60/min, AI report: 30/min", ISSUE_API_LIMIT)
