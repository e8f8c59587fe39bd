"""
Centralised error handling — exception hierarchy + FastAPI handlers.

Provides:
    • Domain-specific exception classes for the alert pipeline
    • Consistent JSON error response format
    • Automatic logging of unhandled errors

Propagation policy:
    PermissionDeniedError, LocationUnavailableError, NoContactsError
        → abort a dispatch (safety-critical steps)
    NotificationFailureError, SpeechFailureError
        → logged only, never abort (best-effort steps)
    TransportFailureError
        → isolated to one contact, never aborts the batch

Usage:
    from backend.app.core.errors import NoContactsError, register_error_handlers

    raise NoContactsError()
"""

from __future__ import annotations

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from backend.app.core.config import settings

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# Exception Hierarchy
# ═══════════════════════════════════════════════════════════════════════════

class SafetyAlertError(Exception):
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


class PermissionDeniedError(SafetyAlertError):
    """Location permission was refused (403)."""

    def __init__(self, message: str = "Location access is required for emergency alerts."):
        super().__init__(
            message=message,
            status_code=403,
            error_code="PERMISSION_DENIED",
        )


class LocationUnavailableError(SafetyAlertError):
    """Position fetch failed after permission was granted (503)."""

    def __init__(self, message: str = "Failed to get current location."):
        super().__init__(
            message=message,
            status_code=503,
            error_code="LOCATION_UNAVAILABLE",
        )


class NoContactsError(SafetyAlertError):
    """Dispatch requested with an empty contact list (409)."""

    def __init__(self):
        super().__init__(
            message="No email address provided. Please add at least one emergency contact.",
            status_code=409,
            error_code="NO_CONTACTS",
        )


class TransportFailureError(SafetyAlertError):
    """Message transport rejected or failed one contact (502)."""

    def __init__(self, contact: str, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(
            message=f"Delivery to {contact} failed: {message}",
            status_code=502,
            error_code="TRANSPORT_FAILURE",
            details={"contact": contact, "upstream_status": status_code},
        )
        self.contact = contact
        self.upstream_status = status_code


class NotificationFailureError(SafetyAlertError):
    """Local notification could not be scheduled (best-effort)."""

    def __init__(self, message: str = ""):
        super().__init__(
            message=f"Notification failed: {message}",
            error_code="NOTIFICATION_FAILURE",
        )


class SpeechFailureError(SafetyAlertError):
    """Spoken announcement failed (best-effort)."""

    def __init__(self, message: str = ""):
        super().__init__(
            message=f"Speech failed: {message}",
            error_code="SPEECH_FAILURE",
        )


class ValidationError(SafetyAlertError):
    """Input validation failed (422)."""

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


class NotFoundError(SafetyAlertError):
    """Resource not found (404)."""

    def __init__(self, resource: str, **identifiers: Any):
        super().__init__(
            message=f"{resource} not found",
            status_code=404,
            error_code="NOT_FOUND",
            details={"resource": resource, **identifiers},
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
        "error": {
            "code": error_code,
            "message": message,
            "status": status_code,
        }
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

    @app.exception_handler(SafetyAlertError)
    async def handle_safety_error(request: Request, exc: SafetyAlertError):
        logger.warning(
            "API Error [%s]: %s | details=%s",
            exc.error_code, exc.message, exc.details,
        )
        return _build_error_response(
            exc.status_code, exc.error_code, exc.message,
            exc.details, request,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError):
        # Raw inputs are left out: they may be non-finite floats or contact data
        errors = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg", ""), "type": e.get("type", "")}
            for e in exc.errors()
        ]
        logger.info("Request validation failed: %s", [e["loc"] for e in errors])
        return _build_error_response(
            422, "VALIDATION_ERROR", "Request validation failed",
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
