"""Error taxonomy shared by the service, provider and route layers.

Every error carries the HTTP status it maps to; the handlers registered in
``voicedesk.main`` turn them into ``{"message": ...}`` JSON bodies.
"""

from typing import Any


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None):
        self.message = message or self.default_message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Response body for this error."""
        return {"message": self.message, **self.details}


class ValidationError(AppError):
    """Malformed or missing input fields."""

    status_code = 400
    default_message = "Invalid request"


class Unauthorized(AppError):
    """Missing/invalid credentials, inactive account or suspended tenant."""

    status_code = 401
    default_message = "Authentication required"


class InvalidToken(Unauthorized):
    default_message = "Invalid token"


class Forbidden(AppError):
    status_code = 403
    default_message = "Insufficient permissions"


class QuotaExceeded(Forbidden):
    """A plan limit would be exceeded by creating one more resource."""

    def __init__(self, message: str, *, current_count: int, limit: int, plan: str):
        super().__init__(
            message,
            details={"currentCount": current_count, "limit": limit, "plan": plan},
        )


class FeatureNotAvailable(Forbidden):
    default_message = "Your plan does not include this feature"


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Conflict(AppError):
    status_code = 409
    default_message = "Resource already exists"


class ProviderError(AppError):
    """Non-2xx answer (or transport failure) from the voice provider."""

    def __init__(self, status_code: int, message: str, body: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class ProviderNotConfigured(ProviderError):
    """The shared provider API key has not been stored yet."""

    def __init__(self, message: str = "Provider API key not configured"):
        super().__init__(503, message)


class InternalError(AppError):
    status_code = 500
