"""Custom exception hierarchy for Intermax.

Provides structured error types that the centralized error handler
translates into consistent JSON responses.
"""

from __future__ import annotations


class IntermaxError(Exception):
    """Base exception for all Intermax errors."""

    status_code: int = 500
    error_type: str = "internal_error"

    def __init__(self, message: str = "An internal error occurred") -> None:
        self.message = message
        super().__init__(message)


class AuthorizationError(IntermaxError):
    """Authorization failure carrying an explicit HTTP-like status code."""

    status_code = 403
    error_type = "authorization_error"

    def __init__(self, message: str = "Forbidden", status_code: int | None = None) -> None:
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code


class Unauthenticated(AuthorizationError):
    """No valid session could be resolved for the request."""

    status_code = 401
    error_type = "unauthenticated"

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(message)


class Forbidden(AuthorizationError):
    """Authenticated, but lacking a permission or resource membership."""

    status_code = 403
    error_type = "forbidden"

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message)


class NotFoundError(IntermaxError):
    """Requested resource was not found, or the caller may not know it exists."""

    status_code = 404
    error_type = "not_found"


class InvalidOperation(IntermaxError):
    """Operation is not allowed on this resource (e.g. mutating a system role)."""

    status_code = 400
    error_type = "invalid_operation"


class ConflictError(IntermaxError):
    """A unique value is already taken."""

    status_code = 409
    error_type = "conflict"


class ValidationError(IntermaxError):
    """Input validation failure beyond Pydantic constraints."""

    status_code = 400
    error_type = "validation_error"
