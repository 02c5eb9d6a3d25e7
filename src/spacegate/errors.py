"""Structured error codes and exception classes for the spacegate HTTP API."""

from __future__ import annotations

__all__ = [
    "ErrorCode",
    "SpacegateError",
    "AuthError",
    "ValidationError",
    "NotFoundError",
    "UpstreamError",
    "PersistenceError",
    "ERROR_STATUS_MAP",
    "openai_error_body",
    "admin_error_body",
]

from enum import Enum


class ErrorCode(str, Enum):
    AUTH_INVALID = "AUTH_INVALID"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"
    PERSISTENCE_ERROR = "PERSISTENCE_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Map ErrorCode → default HTTP status code
ERROR_STATUS_MAP: dict[ErrorCode, int] = {
    ErrorCode.AUTH_INVALID: 401,
    ErrorCode.VALIDATION_ERROR: 400,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.UPSTREAM_ERROR: 500,
    ErrorCode.PERSISTENCE_ERROR: 500,
    ErrorCode.INTERNAL_ERROR: 500,
}

# OpenAI error "type" reported by the chat completions endpoint
_OPENAI_TYPE_MAP: dict[ErrorCode, str] = {
    ErrorCode.AUTH_INVALID: "invalid_request_error",
    ErrorCode.VALIDATION_ERROR: "invalid_request_error",
    ErrorCode.NOT_FOUND: "invalid_request_error",
    ErrorCode.UPSTREAM_ERROR: "api_error",
    ErrorCode.PERSISTENCE_ERROR: "api_error",
    ErrorCode.INTERNAL_ERROR: "api_error",
}


class SpacegateError(Exception):
    """Application error that maps to a JSON error response."""

    code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code: int = status_code if status_code is not None else ERROR_STATUS_MAP.get(self.code, 500)

    @property
    def openai_type(self) -> str:
        return _OPENAI_TYPE_MAP.get(self.code, "api_error")


class AuthError(SpacegateError):
    """Missing, malformed or unknown bearer token / owner identity."""
    code = ErrorCode.AUTH_INVALID


class ValidationError(SpacegateError):
    """Malformed request body."""
    code = ErrorCode.VALIDATION_ERROR


class NotFoundError(SpacegateError):
    code = ErrorCode.NOT_FOUND


class UpstreamError(SpacegateError):
    """The Gemini generation or store API call failed. Message is passed through verbatim."""
    code = ErrorCode.UPSTREAM_ERROR


class PersistenceError(SpacegateError):
    """A durable write to the local JSON store failed."""
    code = ErrorCode.PERSISTENCE_ERROR


def openai_error_body(exc: SpacegateError) -> dict:
    """Envelope used by /v1/* routes: {error: {message, type}}."""
    return {"error": {"message": exc.message, "type": exc.openai_type}}


def admin_error_body(message: str) -> dict:
    """Flat envelope used by the space administration routes."""
    return {"error": message}
