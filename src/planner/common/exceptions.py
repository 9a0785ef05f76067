"""Custom exceptions for the planner application.

Provides a hierarchy of exceptions with proper HTTP status codes
and structured error responses.
"""

from collections.abc import Mapping, Sequence
from typing import Any


class PlannerError(Exception):
    """Base exception for all planner errors."""

    status_code: int = 500
    error_code: str = "INTERNAL_ERROR"
    message: str = "An internal error occurred"
    # Extra response headers, e.g. WWW-Authenticate on 401
    headers: dict[str, str] | None = None

    def __init__(
        self,
        message: str | None = None,
        details: list[Any] | dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        """Initialize exception with optional details.

        Args:
            message: Human-readable error message.
            details: Client-safe error details (field issues, counts).
            cause: Original exception that caused this error.
        """
        self.message = message or self.message
        self.details = details
        self.cause = cause
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API response."""
        result: dict[str, Any] = {
            "error": self.message,
            "code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result


# 400 Bad Request errors
class ValidationError(PlannerError):
    """Request or snapshot validation failed."""

    status_code = 400
    error_code = "VALIDATION_ERROR"
    message = "Request validation failed"


def field_issues(
    errors: Sequence[Mapping[str, Any]],
    skip_prefix: str | None = None,
) -> list[dict[str, str]]:
    """Flatten pydantic error dicts into client-safe per-field issues.

    Args:
        errors: Output of ``ValidationError.errors()`` from pydantic or FastAPI.
        skip_prefix: Leading location element to drop, e.g. ``"body"``.

    Returns:
        One ``{"field", "message", "type"}`` entry per offending field.
    """
    issues = []
    for error in errors:
        loc = list(error.get("loc", ()))
        if skip_prefix is not None and loc and loc[0] == skip_prefix:
            loc = loc[1:]
        issues.append({
            "field": ".".join(str(part) for part in loc) or "(root)",
            "message": str(error.get("msg", "Invalid value")),
            "type": str(error.get("type", "value_error")),
        })
    return issues


class NoWorkspaceError(PlannerError):
    """Caller has no workspace to install into."""

    status_code = 400
    error_code = "NO_WORKSPACE"
    message = "No workspace found for user"


# 401 Unauthorized errors
class AuthenticationError(PlannerError):
    """Authentication failed."""

    status_code = 401
    error_code = "AUTHENTICATION_ERROR"
    message = "Authentication required"
    headers = {"WWW-Authenticate": "Bearer"}


class InvalidTokenError(AuthenticationError):
    """Invalid or expired token."""

    error_code = "INVALID_TOKEN"
    message = "Invalid or expired authentication token"


# 403 Forbidden errors
class AuthorizationError(PlannerError):
    """Authorization failed."""

    status_code = 403
    error_code = "AUTHORIZATION_ERROR"
    message = "Access denied"


class OwnershipError(AuthorizationError):
    """Snapshot or referenced resource belongs to a different user."""

    error_code = "OWNERSHIP_MISMATCH"
    message = "This backup belongs to a different user"


# 404 Not Found errors
class NotFoundError(PlannerError):
    """Resource not found."""

    status_code = 404
    error_code = "NOT_FOUND"
    message = "Resource not found"


class TemplateNotFoundError(NotFoundError):
    """Template not found."""

    error_code = "TEMPLATE_NOT_FOUND"
    message = "Template not found"


# 500 Internal Server errors
class InternalError(PlannerError):
    """Internal server error."""

    status_code = 500
    error_code = "INTERNAL_ERROR"
    message = "An internal error occurred"


class PersistenceError(InternalError):
    """Store failure during a transactional operation; changes rolled back."""

    error_code = "PERSISTENCE_ERROR"
    message = "Failed to restore backup"


class PartialInstallFailure(InternalError):
    """Template installation failed partway through entity creation."""

    error_code = "INSTALL_FAILED"
    message = "Failed to install template content"
