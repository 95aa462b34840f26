"""Application error taxonomy.

Every user-facing failure carries a stable machine ``code`` plus a
human-readable message; the HTTP status is derived from the category.
Routers never build error bodies themselves: they raise, and the handler
registered in ``main`` renders ``{"error": message, "code": code, ...}``.
"""

from typing import Any

from fastapi import status


class AppError(Exception):
    """Base exception for the application."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "INTERNAL_ERROR"

    def __init__(self, message: str, code: str | None = None, **extra: Any):
        self.message = message
        self.code = code or self.default_code
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Return error response as dictionary with error code."""
        return {"error": self.message, "code": self.code, **self.extra}


class ValidationError(AppError):
    """Malformed input: wrong media kind, out-of-range rating, empty content."""
    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_code = "UNAUTHORIZED"


class Forbidden(AppError):
    """Actor lacks rights over the target."""
    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class Conflict(AppError):
    """Membership, friendship or duplicate-row conflicts."""
    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


class InternalError(AppError):
    """Persistence failure."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code = "DATABASE_ERROR"


class UpstreamUnavailable(AppError):
    """Catalog or delivery channel failure."""
    status_code = status.HTTP_502_BAD_GATEWAY
    default_code = "UPSTREAM_UNAVAILABLE"
