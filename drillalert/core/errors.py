"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Every error response uses the same envelope so clients can always tell
"nothing happened" apart from a partial success:

    {"success": false, "message": "...", "error": {"code": ..., "status": ...}}

Usage:
    from drillalert.core.errors import StorageError, ValidationError

    raise ValidationError("type and class required", field="class")
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from drillalert.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class DrillAlertError(Exception):
    """Base exception for all application errors."""

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        *,
        status_code: int = 500,
        error_code: str = "INTERNAL_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details or {}


class ValidationError(DrillAlertError):
    """Input rejected before any store mutation (422)."""

    def __init__(self, message: str, *, field: Optional[str] = None, **details: Any):
        d = {**details}
        if field:
            d["field"] = field
        super().__init__(
            message=message,
            status_code=422,
            error_code="VALIDATION_ERROR",
            details=d,
        )


class NotFoundError(DrillAlertError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
        )


class StorageError(DrillAlertError):
    """Persistence layer failed; the operation was aborted (503)."""

    def __init__(self, operation: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Storage failure during {operation}: {message}".rstrip(": "),
            status_code=503,
            error_code="STORAGE_ERROR",
            details={"operation": operation, **details},
        )


class AuthenticationError(DrillAlertError):
    """Unknown user or wrong password (401)."""

    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(
            message=message,
            status_code=401,
            error_code="AUTHENTICATION_FAILED",
        )


class ConflictError(DrillAlertError):
    """Resource already exists (409)."""

    def __init__(self, message: str, **details: Any):
        super().__init__(
            message=message,
            status_code=409,
            error_code="CONFLICT",
            details=details,
        )


class NotificationError(DrillAlertError):
    """
    A single notification target could not be reached.

    Never escapes the notification bridge: it is converted into a failed
    delivery attempt and reported in the aggregate alert result.
    """

    def __init__(self, recipient: str, message: str = "", **details: Any):
        super().__init__(
            message=f"Notification to {recipient} failed: {message}",
            status_code=502,
            error_code="NOTIFICATION_ERROR",
            details={"recipient": recipient, **details},
        )


# ═══════════════════════════════════════════════════════════════════════════
# Error Response Builder
# ═══════════════════════════════════════════════════════════════════════════

def _build_error_response(
    status_code: int,
    error_code: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
    request: Optional[Request] = None,
) -> JSONResponse:
    """Build a consistent JSON error response."""
    body: Dict[str, Any] = {
        "success": False,
        "message": message,
        "error": {
            "code": error_code,
            "status": status_code,
        },
    }

    if details:
        body["error"]["details"] = details

    if request and not settings.is_production:
        body["error"]["path"] = str(request.url.path)
        body["error"]["method"] = request.method

    return JSONResponse(status_code=status_code, content=body)


# ═══════════════════════════════════════════════════════════════════════════
# FastAPI Exception Handlers
# ═══════════════════════════════════════════════════════════════════════════

def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app."""

    @app.exception_handler(DrillAlertError)
    async def handle_drill_alert_error(request: Request, exc: DrillAlertError):
        log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
        logger.log(
            log_level,
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        errors = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
            for err in exc.errors()
        ]
        logger.warning("Request validation failed: %s", errors)
        return _build_error_response(
            422, "VALIDATION_ERROR", "Invalid request",
            {"errors": errors}, request,
        )

    @app.exception_handler(Exception)
    async def handle_unhandled(request: Request, exc: Exception):
        logger.critical(
            "Unhandled exception: %s\n%s",
            exc, traceback.format_exc(),
        )
        message = str(exc) if settings.DEBUG else "Internal server error"
        return _build_error_response(
            500, "INTERNAL_ERROR", message, request=request,
        )
