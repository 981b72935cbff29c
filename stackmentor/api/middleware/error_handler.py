"""Error handling middleware and exception handlers."""

import logging

from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from stackmentor.services.errors import StackMentorError

logger = logging.getLogger(__name__)


class ErrorResponse:
    """Standardized error response format."""

    @staticmethod
    def create(
        error_type: str,
        message: str,
        details: str | dict | list | None = None,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        headers: dict | None = None,
    ) -> JSONResponse:
        """Create error response.

        Args:
            error_type: Error type identifier
            message: Human-readable error message
            details: Additional error details
            status_code: HTTP status code
            headers: Extra response headers

        Returns:
            JSONResponse with error information
        """
        content = {
            "error": {
                "type": error_type,
                "message": message,
            }
        }

        if details:
            content["error"]["details"] = jsonable_encoder(details)

        return JSONResponse(
            status_code=status_code,
            content=content,
            headers=headers,
        )


def _field_errors(errors: list[dict]) -> list[dict]:
    """Reduce pydantic error entries to location and message."""
    return [
        {
            "field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"),
            "message": str(error.get("msg", "")).removeprefix("Value error, "),
        }
        for error in errors
    ]


async def validation_exception_handler(
    request: Request, exc: ValidationError | RequestValidationError
) -> JSONResponse:
    """Handle Pydantic and request validation errors.

    Args:
        request: FastAPI request
        exc: Validation error

    Returns:
        JSON error response
    """
    logger.warning(f"Validation error on {request.url.path}: {exc}")

    return ErrorResponse.create(
        error_type="validation_error",
        message="Request validation failed",
        details=_field_errors(exc.errors()),
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
    )


async def stackmentor_exception_handler(request: Request, exc: StackMentorError) -> JSONResponse:
    """Handle domain errors raised by the service layer.

    Args:
        request: FastAPI request
        exc: Domain error carrying its own status and type

    Returns:
        JSON error response
    """
    if exc.status_code >= 500:
        logger.error(f"Service error: {exc.message}")
    else:
        logger.info(f"{exc.error_type}: {exc.message}")

    return ErrorResponse.create(
        error_type=exc.error_type,
        message=exc.message,
        details=exc.details,
        status_code=exc.status_code,
        headers={"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None,
    )


async def permission_exception_handler(request: Request, exc: PermissionError) -> JSONResponse:
    """Handle permission errors.

    Args:
        request: FastAPI request
        exc: Permission error

    Returns:
        JSON error response
    """
    logger.warning(f"Permission denied: {exc}")

    return ErrorResponse.create(
        error_type="permission_denied",
        message=str(exc),
        status_code=status.HTTP_403_FORBIDDEN,
    )


HTTP_ERROR_TYPES = {
    status.HTTP_401_UNAUTHORIZED: "authentication_failed",
    status.HTTP_403_FORBIDDEN: "permission_denied",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_429_TOO_MANY_REQUESTS: "rate_limit_exceeded",
}


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Render HTTPExceptions from dependencies and routing in the error envelope.

    Dict details (as raised by the rate limiter) supply the message and
    keep their remaining keys as details. Headers such as WWW-Authenticate
    and Retry-After are passed through.
    """
    detail = exc.detail
    details = None
    if isinstance(detail, dict):
        details = {k: v for k, v in detail.items() if k not in ("error", "message")}
        message = str(detail.get("message") or detail.get("error") or "")
    else:
        message = str(detail)

    logger.info(f"HTTP {exc.status_code} on {request.url.path}: {message}")

    return ErrorResponse.create(
        error_type=HTTP_ERROR_TYPES.get(exc.status_code, "http_error"),
        message=message,
        details=details,
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions.

    Args:
        request: FastAPI request
        exc: Any exception

    Returns:
        JSON error response
    """
    logger.error(f"Unexpected error: {exc}", exc_info=True)

    return ErrorResponse.create(
        error_type="internal_error",
        message="An unexpected error occurred. Please try again later.",
        details=str(exc) if logger.isEnabledFor(logging.DEBUG) else None,
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
