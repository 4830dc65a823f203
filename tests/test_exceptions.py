"""
Unit tests for domain exceptions and exception handler registration.

Tests cover:
- AppException and its subclasses: status codes and message formats
- add_exception_handlers registration
- The handlers' JSON envelope, invoked through a throw-away app
"""

from decimal import Decimal

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import BaseModel, Field

from settlement.core.exceptions import (
    AppException,
    BusinessRuleViolation,
    ConcurrentModification,
    ConflictException,
    GatewayError,
    GatewayNotConfigured,
    InsufficientBalance,
    InvalidTransition,
    NotFoundException,
    add_exception_handlers,
)
from settlement.core.resilience import CircuitBreakerError


class TestAppException:
    """Tests for the base AppException."""

    def test_attributes(self):
        exc = AppException(status_code=400, message="bad request", details={"key": "v"})
        assert exc.status_code == 400
        assert exc.message == "bad request"
        assert exc.details == {"key": "v"}

    def test_str_representation(self):
        exc = AppException(status_code=418, message="I'm a teapot")
        assert str(exc) == "I'm a teapot"


class TestDomainExceptions:
    def test_not_found(self):
        exc = NotFoundException("FundWallet", "abc-123")
        assert exc.status_code == 404
        assert exc.message == "FundWallet with id 'abc-123' not found"

    def test_conflict(self):
        exc = ConflictException("Already exists")
        assert exc.status_code == 409
        assert exc.message == "Already exists"

    def test_concurrent_modification_is_a_conflict(self):
        exc = ConcurrentModification("FundWallet", "w-1")
        assert isinstance(exc, ConflictException)
        assert exc.status_code == 409
        assert exc.identifier == "w-1"
        assert "Reload and try again" in exc.message

    def test_business_rule(self):
        exc = BusinessRuleViolation("Withdrawals are disabled")
        assert exc.status_code == 422

    def test_insufficient_balance_formats_rupees(self):
        exc = InsufficientBalance(Decimal("1000"), Decimal("5000.5"))
        assert isinstance(exc, BusinessRuleViolation)
        assert exc.available == Decimal("1000")
        assert exc.message == (
            "Insufficient wallet balance: available ₹1,000.00, required ₹5,000.50"
        )

    def test_invalid_transition(self):
        exc = InvalidTransition("Payout request", "processed", "approved")
        assert exc.status_code == 422
        assert exc.current == "processed"
        assert "'processed' to 'approved'" in exc.message

    def test_gateway_not_configured(self):
        exc = GatewayNotConfigured("stripe")
        assert exc.status_code == 412
        assert exc.gateway == "stripe"

    def test_gateway_error(self):
        exc = GatewayError("cashfree", "timeout", details={"code": 504})
        assert exc.status_code == 502
        assert exc.message == "cashfree transfer failed: timeout"
        assert exc.details == {"code": 504}


class TestAddExceptionHandlers:
    """Tests that add_exception_handlers registers handlers on the FastAPI app."""

    def test_handlers_registered(self):
        from unittest.mock import MagicMock

        mock_app = MagicMock()
        mock_app.exception_handler = MagicMock(return_value=lambda fn: fn)
        add_exception_handlers(mock_app)
        # AppException, CircuitBreakerError, StarletteHTTPException,
        # RequestValidationError, Exception
        assert mock_app.exception_handler.call_count == 5


class _Body(BaseModel):
    percentage: Decimal = Field(..., ge=1, le=100)


def _app() -> FastAPI:
    # debug=False keeps Starlette's ServerErrorMiddleware from re-raising
    # before the catch-all handler runs.
    app = FastAPI(debug=False)
    add_exception_handlers(app)

    @app.get("/domain")
    async def domain():
        raise InsufficientBalance(Decimal("10"), Decimal("20"))

    @app.get("/gateway")
    async def gateway():
        raise GatewayError("razorpay", "unreachable")

    @app.get("/circuit")
    async def circuit():
        raise CircuitBreakerError(name="gateway:stripe", retry_after=10.0)

    @app.get("/crash")
    async def crash():
        raise RuntimeError("unexpected")

    @app.post("/validate")
    async def validate(body: _Body):
        return {"ok": True}

    return app


async def _call(method: str, url: str, **kwargs):
    transport = ASGITransport(app=_app(), raise_app_exceptions=False)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        return await client.request(method, url, **kwargs)


class TestExceptionHandlersIntegration:
    """Invoke the actual exception handlers to cover their response logic."""

    @pytest.mark.asyncio
    async def test_domain_error_envelope(self):
        resp = await _call("GET", "/domain")
        assert resp.status_code == 422
        assert resp.json() == {
            "error": True,
            "message": "Insufficient wallet balance: available ₹10.00, required ₹20.00",
        }

    @pytest.mark.asyncio
    async def test_gateway_error_502(self):
        resp = await _call("GET", "/gateway")
        assert resp.status_code == 502
        assert resp.json()["message"] == "razorpay transfer failed: unreachable"

    @pytest.mark.asyncio
    async def test_circuit_breaker_handler_returns_503(self):
        resp = await _call("GET", "/circuit")
        assert resp.status_code == 503
        assert resp.headers["Retry-After"] == "11"
        assert "gateway:stripe" in resp.json()["message"]

    @pytest.mark.asyncio
    async def test_global_500_handler(self):
        resp = await _call("GET", "/crash")
        assert resp.status_code == 500
        body = resp.json()
        assert body["error"] is True
        assert "Internal Server Error" in body["message"]
        assert "unexpected" not in body["message"]

    @pytest.mark.asyncio
    async def test_validation_handler_returns_422(self):
        resp = await _call("POST", "/validate", json={"percentage": 150})
        assert resp.status_code == 422
        body = resp.json()
        assert body["message"] == "Validation failed"
        assert body["details"][0]["field"] == "body -> percentage"

    @pytest.mark.asyncio
    async def test_unknown_route_404(self):
        resp = await _call("GET", "/nowhere")
        assert resp.status_code == 404
        assert resp.json() == {"error": True, "message": "Not Found"}
