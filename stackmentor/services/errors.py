"""Domain exceptions raised by the service layer.

Each exception carries the HTTP status and error type used by the API
exception handlers. Authorization failures use the builtin PermissionError.
"""

from fastapi import status


class StackMentorError(Exception):
    """Base class for expected, user-facing failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_type: str = "error"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(StackMentorError):
    status_code = status.HTTP_404_NOT_FOUND
    error_type = "not_found"


class ConflictError(StackMentorError):
    status_code = status.HTTP_409_CONFLICT
    error_type = "conflict"


class InvalidRequestError(StackMentorError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_type = "invalid_request"


class AuthenticationError(StackMentorError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_type = "authentication_failed"


class TokenExpiredError(StackMentorError):
    status_code = status.HTTP_410_GONE
    error_type = "token_expired"


class EmailDeliveryError(Exception):
    """SMTP delivery failed."""
