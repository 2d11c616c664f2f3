"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain, HTTP, validation and unexpected) and return consistent JSON
responses with proper HTTP status codes and traceability.

Design:
- AppError subclasses → appropriate HTTP status (400, 401, 404, 409, 415, 429, 502)
- HTTPException → same status, wrapped in the error envelope
- RequestValidationError → 400 with a flattened message
- Unexpected Exception → generic 500 (safety net)
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.errors import (
    AppError,
    AuthenticationAppError,
    ConflictAppError,
    MessagingAppError,
    RateLimitedAppError,
    SessionNotFoundAppError,
    UnsupportedMediaAppError,
)
from app.core.logging import get_request_id

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    """Map a domain error to its HTTP status code."""
    if isinstance(exc, AuthenticationAppError):
        return 401
    if isinstance(exc, SessionNotFoundAppError):
        return 404
    if isinstance(exc, ConflictAppError):
        return 409
    if isinstance(exc, UnsupportedMediaAppError):
        return 415
    if isinstance(exc, RateLimitedAppError):
        return 429
    if isinstance(exc, MessagingAppError):
        return 502
    return 400


def _error_body(code: str, message: str, details: dict | None = None) -> dict:
    error_content = {
        "code": code,
        "message": message,
        "request_id": get_request_id(),
    }
    # Include details only if present (optional structured context)
    if details:
        error_content["details"] = details
    return {"success": False, "error": error_content}


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    All responses include:
    - error.code: Machine-readable error code
    - error.message: Human-readable message
    - error.request_id: For distributed tracing
    - error.details: Optional structured context

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error details.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "has_details": bool(exc.details),
            "request_path": request.url.path,
        },
    )

    headers: dict[str, str] | None = None
    if isinstance(exc, RateLimitedAppError) and exc.details and "retry_after" in exc.details:
        headers = {"Retry-After": str(exc.details["retry_after"])}

    return JSONResponse(
        status_code=status_code,
        content=_error_body(exc.code, exc.message, dict(exc.details) if exc.details else None),
        headers=headers,
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Wrap framework/dependency HTTP errors in the error envelope.

    Preserves headers set by dependencies (e.g. Retry-After on 429).
    """
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code == 404 and message == "Not Found":
        message = f"Route {request.url.path} not found"

    logger.info(
        "http_error_handled",
        extra={
            "status_code": exc.status_code,
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(f"http_{exc.status_code}", message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render request validation failures as 400 with readable messages."""
    errors = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        errors.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))

    logger.warning(
        "request_validation_failed",
        extra={
            "request_path": request.url.path,
            "request_method": request.method,
            "error_count": len(errors),
        },
    )

    return JSONResponse(
        status_code=400,
        content=_error_body(
            "validation_failed",
            f"Validation failed: {', '.join(errors)}",
            {"errors": errors},
        ),
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic
    message. No stack traces or exception text reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error.
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
        },
    )

    return JSONResponse(
        status_code=500,
        content=_error_body(
            "internal_server_error",
            "An unexpected error occurred. Please try again later.",
        ),
    )


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(StarletteHTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(general_exception_handler)
