"""
JWT Auth Middleware: parses the Bearer token and sets g.current_user.

g.current_user is a dict {id, username, role, role_level} or None.
g.auth_error is "INVALID_TOKEN" when a token was sent but failed
verification, so require_role can tell "missing" from "bad".

The middleware never rejects a request itself; endpoints opt in with
gemba.auth.require_role.
"""

import logging

import jwt as pyjwt
from flask import g, request

from gemba.services.jwt_service import decode_access_token

logger = logging.getLogger(__name__)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.auth_error = None

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]  # Strip "Bearer "

        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            g.auth_error = "INVALID_TOKEN"
            logger.debug("Expired token on %s", request.path)
            return
        except pyjwt.InvalidTokenError as exc:
            g.auth_error = "INVALID_TOKEN"
            logger.info("Rejected token on %s: %s", request.path, exc)
            return

        g.current_user = {
            "id": payload.get("sub"),
            "username": payload.get("username", ""),
            "role": payload.get("role", ""),
            "role_level": payload["role_level"],
        }
