"""Error taxonomy and handlers for consistent error responses."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from task_market_service.logging import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI, Request
    from starlette.types import ExceptionHandler


class ServiceError(Exception):
    """
    Base for every named failure a core operation can return.

    Carries a machine-readable code, a human message, the HTTP status the
    transport should use, and optional details.
    """

    def __init__(
        self,
        error: str,
        message: str,
        status_code: int,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.error = error
        self.message = message
        self.status_code = status_code
        self.details: dict[str, Any] = details if details is not None else {}


class ValidationError(ServiceError):
    """Malformed or missing required input."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("VALIDATION_ERROR", message, 400, details)


class NotFoundError(ServiceError):
    """Referenced task does not exist."""

    def __init__(self, message: str = "Task not found", details: dict[str, Any] | None = None) -> None:
        super().__init__("TASK_NOT_FOUND", message, 404, details)


class BidNotFoundError(ServiceError):
    """Referenced bid does not exist."""

    def __init__(self, message: str = "Bid not found", details: dict[str, Any] | None = None) -> None:
        super().__init__("BID_NOT_FOUND", message, 404, details)


class DuplicateBidError(ServiceError):
    """The bidder already bid on this task. Expected, not a fault."""

    def __init__(
        self,
        message: str = "You already bid on this task",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__("BID_ALREADY_EXISTS", message, 409, details)


class TaskHasBidsError(ServiceError):
    """Deletion refused because the task still has bids."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("TASK_HAS_BIDS", message, 409, details)


class InvalidTransitionError(ServiceError):
    """Requested status change is not in the transition graph."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__("INVALID_STATUS_TRANSITION", message, 409, details)


class StoreError(ServiceError):
    """The persistence layer failed. Never retried by the core."""

    def __init__(
        self,
        message: str = "Persistent store operation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__("STORE_ERROR", message, 500, details)


async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
    """Handle ServiceError exceptions."""
    logger = get_logger(__name__)
    if exc.status_code >= 500:
        logger.error(
            "Service failure",
            exc_info=exc,
            extra={"error_code": exc.error, "path": str(request.url.path)},
        )
    else:
        logger.warning(
            "Service error",
            extra={
                "error_code": exc.error,
                "status_code": exc.status_code,
                "path": str(request.url.path),
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.error, "message": exc.message, "details": exc.details},
    )


async def unhandled_exception_handler(request: Request, _exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger = get_logger(__name__)
    logger.exception("Unhandled exception", extra={"path": str(request.url.path)})
    return JSONResponse(
        status_code=500,
        content={
            "error": "internal_error",
            "message": "An unexpected error occurred",
            "details": {},
        },
    )


async def http_exception_handler(
    _request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Handle Starlette HTTP exceptions (404 for unknown routes, 405 from router)."""
    if exc.status_code == 405:
        return JSONResponse(
            status_code=405,
            content={
                "error": "METHOD_NOT_ALLOWED",
                "message": "Method not allowed",
                "details": {},
            },
        )
    if exc.status_code == 404:
        return JSONResponse(
            status_code=404,
            content={"error": "NOT_FOUND", "message": "Resource not found", "details": {}},
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": "HTTP_ERROR",
            "message": str(exc.detail),
            "details": {},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the app."""
    app.add_exception_handler(ServiceError, cast("ExceptionHandler", service_error_handler))
    app.add_exception_handler(Exception, cast("ExceptionHandler", unhandled_exception_handler))
    app.add_exception_handler(
        StarletteHTTPException,
        cast("ExceptionHandler", http_exception_handler),
    )
