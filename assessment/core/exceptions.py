"""
Custom exceptions and error handlers for the Assessment Engine
Provides consistent error responses and logging
"""

import logging
from typing import Any, Dict, Optional

import sentry_sdk
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from assessment.core.config import settings

logger = logging.getLogger(__name__)


class AssessmentException(Exception):
    """Base exception for the assessment engine"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code or "INTERNAL_ERROR"
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(AssessmentException):
    """Malformed authoring input (no questions, bad marks, missing correct option)"""

    def __init__(
        self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="VALIDATION_ERROR",
            details=details,
        )


class NotFoundException(AssessmentException):
    """Resource not found exception"""

    def __init__(
        self,
        resource: str = "Resource",
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message=message or f"{resource} not found",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND",
            details=details,
        )


class InvalidStateException(AssessmentException):
    """Action is illegal for the current quiz or attempt status"""

    def __init__(
        self, message: str = "Invalid state for this action", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="INVALID_STATE",
            details=details,
        )


class OutOfWindowException(AssessmentException):
    """Action falls outside the quiz window"""

    def __init__(
        self, message: str = "Outside the quiz window", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="OUT_OF_WINDOW",
            details=details,
        )


class ConflictException(AssessmentException):
    """Duplicate attempt, double submit or structural edit after attempts exist"""

    def __init__(
        self, message: str = "Conflicting operation", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code="CONFLICT",
            details=details,
        )


class AuthenticationException(AssessmentException):
    """Authentication exception"""

    def __init__(
        self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            error_code="AUTHENTICATION_ERROR",
            details=details,
        )


class AuthorizationException(AssessmentException):
    """Caller is not entitled to the quiz or cohort"""

    def __init__(
        self, message: str = "Insufficient permissions", details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTHORIZATION_ERROR",
            details=details,
        )


def create_error_response(
    request: Request,
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    """Render the common ``{"error": {...}}`` envelope"""
    body = {
        "code": error_code,
        "message": message,
        "details": details or {},
        "path": request.url.path,
        "method": request.method,
        "request_id": getattr(request.state, "request_id", None),
    }
    return JSONResponse(status_code=status_code, content={"error": body})


async def assessment_exception_handler(
    request: Request, exc: AssessmentException
) -> JSONResponse:
    # Rejected domain operations are routine; only 5xx are errors
    log = logger.error if exc.status_code >= 500 else logger.info
    log(
        f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}",
        extra={"error_code": exc.error_code, "status_code": exc.status_code},
    )
    if settings.SENTRY_DSN and exc.status_code >= 500:
        sentry_sdk.capture_exception(exc)

    return create_error_response(
        request, exc.status_code, exc.error_code, exc.message, exc.details
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    logger.warning(
        f"HTTP {exc.status_code} on {request.method} {request.url.path}: {exc.detail}"
    )
    return create_error_response(request, exc.status_code, "HTTP_ERROR", str(exc.detail))


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request body or query failed schema validation"""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"],
            "type": error["type"],
        }
        for error in exc.errors()
    ]
    logger.info("Request rejected by schema validation", extra={"errors": errors})
    return create_error_response(
        request,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
        "VALIDATION_ERROR",
        "Request validation failed",
        {"errors": errors},
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        f"Unhandled {type(exc).__name__} on {request.method} {request.url.path}",
        exc_info=exc,
    )
    if settings.SENTRY_DSN:
        sentry_sdk.capture_exception(exc)

    message = "An unexpected error occurred" if settings.is_production() else str(exc)
    return create_error_response(
        request, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", message
    )


def register_exception_handlers(app) -> None:
    app.add_exception_handler(AssessmentException, assessment_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
