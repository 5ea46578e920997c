"""Standardised API error responses.

Usage
-----
    from gemba.utils.errors import api_error, E

    return api_error(E.NOT_FOUND, "Issue not found")
    return api_error(E.VALIDATION, "title is required", field="title")

Every error leaves the API in the shared envelope::

    {"data": null, "meta": null, "errors": [{"code": ..., "message": ..., "field"?: ...}]}
"""

from __future__ import annotations

import logging

from flask import current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from gemba.core.exceptions import ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


# ── Error code constants ──────────────────────────────────────────────
class E:
    """Machine-readable error code constants."""

    # HTTP 400
    VALIDATION = "VALIDATION_ERROR"

    # HTTP 401
    UNAUTHORIZED = "UNAUTHORIZED"
    INVALID_TOKEN = "INVALID_TOKEN"

    # HTTP 403
    FORBIDDEN = "FORBIDDEN"

    # HTTP 404 / 405
    NOT_FOUND = "NOT_FOUND"
    METHOD_NOT_ALLOWED = "METHOD_NOT_ALLOWED"

    # HTTP 409
    CONFLICT = "CONFLICT"

    # HTTP 429
    RATE_LIMITED = "RATE_LIMITED"

    # HTTP 500
    INTERNAL = "INTERNAL_ERROR"


# ── Default HTTP status mapping ───────────────────────────────────────
_DEFAULT_STATUS: dict[str, int] = {
    E.VALIDATION: 400,
    E.UNAUTHORIZED: 401,
    E.INVALID_TOKEN: 401,
    E.FORBIDDEN: 403,
    E.NOT_FOUND: 404,
    E.METHOD_NOT_ALLOWED: 405,
    E.CONFLICT: 409,
    E.RATE_LIMITED: 429,
    E.INTERNAL: 500,
}

_HTTP_CODES: dict[int, str] = {
    400: E.VALIDATION,
    401: E.UNAUTHORIZED,
    403: E.FORBIDDEN,
    404: E.NOT_FOUND,
    405: E.METHOD_NOT_ALLOWED,
    409: E.CONFLICT,
    429: E.RATE_LIMITED,
}


def error_body(code: str, message: str, *, field: str | None = None) -> dict:
    """Build the envelope for a single error."""
    err = {"code": code, "message": message}
    if field:
        err["field"] = field
    return {"data": None, "meta": None, "errors": [err]}


def api_error(
    code: str,
    message: str,
    *,
    status: int | None = None,
    field: str | None = None,
    details: dict | None = None,
):
    """Return a standard JSON error response.

    Parameters
    ----------
    code : str
        Machine-readable error code (use ``E.*`` constants).
    message : str
        Human-readable explanation for developers / UI.
    status : int, optional
        HTTP status override.  Falls back to ``_DEFAULT_STATUS[code]``,
        then to ``400``.
    field : str, optional
        Offending request field, when there is exactly one.
    details : dict, optional
        Field-level errors; each becomes its own ``errors[]`` entry.

    Returns
    -------
    tuple[Response, int]
        ``(jsonify(body), http_status)`` – drop-in for Flask views.
    """
    http_status = status or _DEFAULT_STATUS.get(code, 400)

    body = error_body(code, message, field=field)
    for name, problem in (details or {}).items():
        if name == field:
            continue
        body["errors"].append({"code": code, "field": name, "message": str(problem)})

    return jsonify(body), http_status


# ── App-wide handlers ─────────────────────────────────────────────────

def register_error_handlers(app):
    """Map domain exceptions and HTTP errors onto the response envelope."""

    @app.errorhandler(ValidationError)
    def _handle_validation(error: ValidationError):
        field = next(iter(error.details), None) if len(error.details) == 1 else None
        return api_error(E.VALIDATION, str(error), field=field, details=error.details)

    @app.errorhandler(NotFoundError)
    def _handle_not_found(error: NotFoundError):
        logger.info("Not found: %s", error)
        return api_error(E.NOT_FOUND, error.public_message)

    @app.errorhandler(ConflictError)
    def _handle_conflict(error: ConflictError):
        logger.info("Conflict on %s: %s", error.resource, error)
        return api_error(E.CONFLICT, str(error))

    @app.errorhandler(HTTPException)
    def _handle_http(error: HTTPException):
        code = _HTTP_CODES.get(error.code, E.INTERNAL if (error.code or 500) >= 500 else E.VALIDATION)
        message = error.description or error.name
        return api_error(code, message, status=error.code)

    @app.errorhandler(Exception)
    def _handle_unexpected(error: Exception):
        logger.exception(
            "Unhandled error on %s %s endpoint=%s",
            request.method, request.path, request.endpoint,
        )
        if current_app.debug:
            message = str(error) or "Internal server error"
        else:
            message = "Internal server error"
        return api_error(E.INTERNAL, message)
