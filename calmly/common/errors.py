"""Error taxonomy shared by the client, proxy and backend tiers.

Every failure that crosses a tier boundary is converted to one of these
before it reaches a caller. Each carries a human-readable ``message`` and the
HTTP status it maps to.
"""
from __future__ import annotations


class CalmlyError(Exception):
    """Base error; ``message`` is always safe to show to a user."""

    status_code: int = 500
    default_message: str = "Something went wrong"

    def __init__(self, message: str | None = None, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class AuthenticationRequired(CalmlyError):
    status_code = 401
    default_message = "Authentication required"


class ValidationError(CalmlyError):
    status_code = 400
    default_message = "Invalid request"


class NotFound(CalmlyError):
    status_code = 404
    default_message = "Not found"


class UpstreamUnavailable(CalmlyError):
    status_code = 502
    default_message = "Upstream service unavailable"


class InternalError(CalmlyError):
    status_code = 500
    default_message = "Internal server error"


class ApiError(CalmlyError):
    """Non-success response that maps to no narrower class."""


_STATUS_MAP = {
    400: ValidationError,
    401: AuthenticationRequired,
    404: NotFound,
    500: InternalError,
    502: UpstreamUnavailable,
    503: UpstreamUnavailable,
    504: UpstreamUnavailable,
}


def error_for_status(status_code: int, message: str) -> CalmlyError:
    """Build the taxonomy error for an HTTP status, keeping the status itself."""
    cls = _STATUS_MAP.get(status_code, ApiError)
    return cls(message, status_code=status_code)
