"""
Platform-wide exception hierarchy.

Services raise these types; gemba.utils.errors registers one handler per
type on the app so every blueprint gets the same envelope and status code.

Usage:
    from gemba.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Issue", resource_id=issue_id)
    raise ValidationError("Title is required", details={"title": "required"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Maps to HTTP 404 / NOT_FOUND.

    Args:
        resource: Human-readable entity name (e.g. "Issue").
        resource_id: The key that was looked up. Included in logs, not in the HTTP response.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)

    @property
    def public_message(self) -> str:
        return f"{self.resource} not found"


class ValidationError(Exception):
    """Raised when input is missing, malformed or breaks a business rule.

    Maps to HTTP 400 / VALIDATION_ERROR. Always raised before any write.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown. Keys are field names.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation is not allowed in the resource's current state.

    Maps to HTTP 409 / CONFLICT (e.g. escalating a RESOLVED issue).

    Args:
        resource: Entity name.
        message: Why the operation conflicts with the current state.
    """

    def __init__(self, resource: str, message: str) -> None:
        self.resource = resource
        super().__init__(message)
