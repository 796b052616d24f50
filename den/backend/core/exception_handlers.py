"""
Exception Handlers.

FastAPI exception handlers that convert application exceptions
to `{"error": ..., "code": ...}` JSON bodies. All exceptions are logged
with request context.

Usage:
    from den.backend.core.exception_handlers import register_exception_handlers

    app = FastAPI()
    register_exception_handlers(app)
"""

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from den.backend.core.exceptions import (
    ApplicationError,
    AuthenticationError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)
from den.backend.core.logging import get_logger
from den.backend.schemas.base import ErrorResponse

logger = get_logger(__name__)

# Map exception types to HTTP status codes
EXCEPTION_STATUS_MAP: dict[type[ApplicationError], int] = {
    NotFoundError: 404,
    ValidationError: 400,
    AuthenticationError: 401,
    ConflictError: 409,
    DatabaseError: 503,
}


def _get_request_id(request: Request) -> str | None:
    """Extract request ID from request state or headers."""
    if hasattr(request.state, "request_id"):
        return request.state.request_id
    return request.headers.get("x-request-id")


def error_response(status_code: int, message: str, code: str | None = None) -> JSONResponse:
    """Build the JSON error response used across the API."""
    body = ErrorResponse(error=message, code=code)
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(exclude_none=True),
    )


async def application_error_handler(
    request: Request,
    exc: ApplicationError,
) -> JSONResponse:
    """
    Handle all ApplicationError subclasses.

    Converts application exceptions to JSON error bodies
    with appropriate HTTP status codes.
    """
    status_code = EXCEPTION_STATUS_MAP.get(type(exc), 500)

    log_extra = {
        "code": exc.code,
        "message": exc.message,
        "status": status_code,
        "path": request.url.path,
        "method": request.method,
        "request_id": _get_request_id(request),
    }
    if isinstance(exc, ValidationError) and exc.details:
        log_extra["details"] = exc.details

    if status_code >= 500:
        logger.error("Server error", extra=log_extra)
    else:
        logger.warning("Client error", extra=log_extra)

    return error_response(status_code, exc.message, exc.code)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render routing errors (unknown path, wrong method) in the API error shape."""
    if exc.status_code == 404:
        return error_response(404, "Not found", "RES_NOT_FOUND")
    return error_response(exc.status_code, str(exc.detail))


async def validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle FastAPI request validation errors.

    Only path and query parameters go through FastAPI validation; request
    bodies are parsed by the handlers themselves.
    """
    errors = exc.errors()

    logger.warning(
        "Request validation failed",
        extra={
            "path": request.url.path,
            "method": request.method,
            "error_count": len(errors),
            "request_id": _get_request_id(request),
        },
    )

    return error_response(422, "Request validation failed", "VAL_REQUEST_INVALID")


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Internal details are logged, never returned to the caller.
    """
    logger.exception(
        "Unhandled exception",
        extra={
            "path": request.url.path,
            "method": request.method,
            "exception_type": type(exc).__name__,
            "request_id": _get_request_id(request),
        },
    )

    return error_response(500, "Internal server error", "SYS_INTERNAL_ERROR")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI app.

    Args:
        app: FastAPI application instance
    """
    app.add_exception_handler(ApplicationError, application_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    logger.debug("Exception handlers registered")
