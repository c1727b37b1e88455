"""Error taxonomy shared by services, repositories and the HTTP layer.

Every error carries a stable HTTP status and a machine-readable code. The message
is safe to show to clients; internal detail goes to the logs only.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    code = "internal"
    message = "Internal server error"

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message

    def to_dict(self) -> dict:
        return {"error": {"code": self.code, "message": self.message}}


class InvalidCredentials(AppError):
    status_code = 401
    code = "invalid_credentials"
    message = "Invalid username or password"


class Unauthorized(AppError):
    status_code = 401
    code = "unauthorized"
    message = "Authentication required"


class SessionInvalid(AppError):
    status_code = 401
    code = "session_invalid"
    message = "Session is no longer valid"


class Forbidden(AppError):
    status_code = 403
    code = "forbidden"
    message = "Not allowed"


class NotFound(AppError):
    status_code = 404
    code = "not_found"
    message = "Not found"


class Malformed(AppError):
    status_code = 400
    code = "malformed"
    message = "Malformed request"


class Conflict(AppError):
    status_code = 409
    code = "conflict"
    message = "Resource already exists"


class Internal(AppError):
    pass


class RateLimited(AppError):
    status_code = 429
    code = "rate_limited"
    message = "Too many requests, try again shortly"


class RequestTimeout(AppError):
    status_code = 408
    code = "request_timeout"
    message = "Request took too long"
