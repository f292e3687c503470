"""
Application-wide exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from reporttracker.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Flag", resource_id=42)
    raise ValidationError("liters must be a number", details={"liters": "not a number"})
"""


class NotFoundError(Exception):
    """Raised when a requested resource does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Flag", "Daily data").
        resource_id: The PK that was looked up. Included in logs, not in HTTP response.
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


class ForbiddenError(Exception):
    """Raised when the acting principal lacks ownership or the required role."""

    def __init__(self, message: str = "Not authorized") -> None:
        super().__init__(message)


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
                 Keys are field names; values are error descriptions.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class ConflictError(Exception):
    """Raised when an operation is not allowed from the entity's current state.

    Args:
        resource: Model name.
        current_status: The status the entity was in when the operation was attempted.
        reason: Human-readable explanation.
    """

    def __init__(self, resource: str, current_status: str | None, reason: str) -> None:
        self.resource = resource
        self.current_status = current_status
        self.reason = reason
        super().__init__(reason)


class CollaboratorError(Exception):
    """Raised when an external collaborator (evidence store, mail relay) fails.

    Args:
        collaborator: Short name of the failing collaborator.
        message: Human-readable explanation, safe to show to callers.
    """

    def __init__(self, collaborator: str, message: str) -> None:
        self.collaborator = collaborator
        super().__init__(message)
