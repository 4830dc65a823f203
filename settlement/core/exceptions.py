"""
Domain exceptions and the global FastAPI exception handlers.

Services raise the exceptions defined here without importing FastAPI, and the
handlers registered by :func:`add_exception_handlers` turn them into a single
JSON envelope::

    {
        "error": true,
        "message": "<human-readable description>"
    }

Precondition failures (insufficient balance, missing wallet, missing gateway
credentials, blank rejection reason) are raised before any record is written,
so the caller can rely on "error response ⇒ nothing changed" for them.  Errors
raised in the middle of a multi-step workflow carry no such guarantee.
"""

import logging
from decimal import Decimal
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from settlement.core.resilience import CircuitBreakerError

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────
# Domain exceptions
# ────────────────────────────────────────────────────────────────────────────


class AppException(Exception):
    """Base exception for all application-level errors."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        self.status_code = status_code
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundException(AppException):
    """Resource not found (404)."""

    def __init__(self, resource: str, identifier: Any):
        super().__init__(
            status_code=404,
            message=f"{resource} with id '{identifier}' not found",
        )


class ConflictException(AppException):
    """Resource already exists or was changed underneath us (409)."""

    def __init__(self, message: str):
        super().__init__(status_code=409, message=message)


class ConcurrentModification(ConflictException):
    """A versioned record was updated by another writer since it was read."""

    def __init__(self, resource: str, identifier: Any):
        self.resource = resource
        self.identifier = identifier
        super().__init__(
            f"{resource} '{identifier}' was modified concurrently. "
            "Reload and try again."
        )


class BusinessRuleViolation(AppException):
    """Business rule was violated (422)."""

    def __init__(self, message: str):
        super().__init__(status_code=422, message=message)


class InsufficientBalance(BusinessRuleViolation):
    """Wallet does not hold enough available balance for the operation."""

    def __init__(self, available: Decimal, required: Decimal):
        self.available = available
        self.required = required
        super().__init__(
            f"Insufficient wallet balance: available ₹{available:,.2f}, "
            f"required ₹{required:,.2f}"
        )


class InvalidTransition(BusinessRuleViolation):
    """Requested state-machine move is not allowed from the current state."""

    def __init__(self, resource: str, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"{resource} cannot move from '{current}' to '{requested}'"
        )


class GatewayNotConfigured(AppException):
    """Payment gateway credentials are missing (412)."""

    def __init__(self, gateway: str):
        self.gateway = gateway
        super().__init__(
            status_code=412,
            message=f"Payment gateway '{gateway}' is not configured",
        )


class GatewayError(AppException):
    """Payment gateway rejected the transfer or could not be reached (502)."""

    def __init__(self, gateway: str, message: str, details: Any = None):
        self.gateway = gateway
        super().__init__(
            status_code=502,
            message=f"{gateway} transfer failed: {message}",
            details=details,
        )


# ────────────────────────────────────────────────────────────────────────────
# FastAPI exception handler registration
# ────────────────────────────────────────────────────────────────────────────


def add_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI application instance."""

    @app.exception_handler(AppException)
    async def app_exception_handler(
        request: Request, exc: AppException
    ) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(
                "%s on %s %s: %s",
                type(exc).__name__,
                request.method,
                request.url.path,
                exc.message,
            )
        else:
            logger.warning(
                "%s on %s %s: %s",
                type(exc).__name__,
                request.method,
                request.url.path,
                exc.message,
            )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": exc.message},
        )

    @app.exception_handler(CircuitBreakerError)
    async def circuit_open_handler(
        request: Request, exc: CircuitBreakerError
    ) -> JSONResponse:
        """A dependency is failing fast; tell the client when to come back."""
        return JSONResponse(
            status_code=503,
            content={"error": True, "message": str(exc)},
            headers={"Retry-After": str(int(exc.retry_after) + 1)},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": True, "message": exc.detail},
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        """Return a 422 listing every field that failed validation."""
        errors = []
        for err in exc.errors():
            loc = " -> ".join(str(part) for part in err["loc"])
            errors.append({"field": loc, "message": err["msg"]})
        return JSONResponse(
            status_code=422,
            content={"error": True, "message": "Validation failed", "details": errors},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        """
        Catch-all for unexpected exceptions.

        A failure here may have happened half-way through a workflow; the
        traceback in the error log is the only record of which step broke.
        """
        logger.exception(
            "Unhandled exception on %s %s", request.method, request.url.path
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": True,
                "message": "Internal Server Error. Please contact support.",
            },
        )
