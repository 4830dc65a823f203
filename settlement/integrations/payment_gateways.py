"""
Payout gateway clients: Razorpay Payouts, Stripe Transfers, Cashfree Payouts.

A gateway is only called after every local precondition of the payout has
passed and before any ledger mutation, so a failed transfer leaves no trace
in the ledger.

Success means an HTTP 2xx response carrying a gateway-assigned reference id.
Anything else raises :class:`GatewayError`.  Credentials come from the
:class:`PlatformConfig` snapshot; a gateway without them raises
:class:`GatewayNotConfigured`.

Each gateway has its own circuit breaker, counting transport failures only.
A rejected transfer is an answer, not an outage.
"""

import logging
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Optional, Type
from uuid import UUID

import httpx

from settlement.core.config import settings
from settlement.core.exceptions import (
    BusinessRuleViolation,
    GatewayError,
    GatewayNotConfigured,
)
from settlement.core.resilience import get_circuit_breaker
from settlement.services.platform_config import PlatformConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PayoutInstruction:
    """What to send, and where."""

    payout_id: UUID
    amount: Decimal
    beneficiary_name: str
    bank_account_number: str
    bank_ifsc_code: str
    bank_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    stripe_account_id: Optional[str] = None

    @property
    def transfer_id(self) -> str:
        return f"PAYOUT_{self.payout_id.hex}"


@dataclass(frozen=True)
class TransferResult:
    gateway: str
    reference_id: str
    utr: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict, compare=False)


def to_paise(amount: Decimal) -> int:
    return int((amount * 100).to_integral_value(rounding=ROUND_HALF_UP))


class PaymentGateway:
    """Base class; subclasses implement ``is_configured`` and ``_transfer``."""

    name = "gateway"

    def __init__(
        self,
        config: PlatformConfig,
        client: Optional[httpx.AsyncClient] = None,
        base_url: Optional[str] = None,
    ):
        self.config = config
        self.base_url = (base_url or self.default_base_url()).rstrip("/")
        self._client = client
        self._breaker = get_circuit_breaker(
            f"gateway:{self.name}", expected_exceptions=(httpx.TransportError,)
        )

    @classmethod
    def default_base_url(cls) -> str:
        raise NotImplementedError

    def is_configured(self) -> bool:
        raise NotImplementedError

    def ensure_configured(self) -> None:
        if not self.is_configured():
            raise GatewayNotConfigured(self.name)

    def validate(self, instruction: PayoutInstruction) -> None:
        """Gateway-specific checks on the instruction; raise before any I/O."""
        if instruction.amount <= 0:
            raise BusinessRuleViolation("Transfer amount must be positive")

    async def transfer(self, instruction: PayoutInstruction) -> TransferResult:
        self.ensure_configured()
        self.validate(instruction)
        try:
            result = await self._breaker.call(self._with_client, instruction)
        except httpx.TransportError as exc:
            raise GatewayError(self.name, f"gateway unreachable ({type(exc).__name__})")
        logger.info(
            "%s transfer %s accepted: reference=%s utr=%s",
            self.name,
            instruction.transfer_id,
            result.reference_id,
            result.utr,
            extra={"entity_id": str(instruction.payout_id), "amount": str(instruction.amount)},
        )
        return result

    async def _with_client(self, instruction: PayoutInstruction) -> TransferResult:
        if self._client is not None:
            return await self._transfer(self._client, instruction)
        async with httpx.AsyncClient(timeout=settings.GATEWAY_TIMEOUT) as client:
            return await self._transfer(client, instruction)

    async def _transfer(
        self, client: httpx.AsyncClient, instruction: PayoutInstruction
    ) -> TransferResult:
        raise NotImplementedError

    def _json_or_error(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not response.is_success:
            message = _error_message(body) or f"HTTP {response.status_code}"
            logger.warning(
                "%s rejected request with HTTP %d: %s",
                self.name,
                response.status_code,
                message,
            )
            raise GatewayError(self.name, message, details=body)
        if not isinstance(body, dict):
            raise GatewayError(self.name, "unexpected response body")
        return body


def _error_message(body: Any) -> Optional[str]:
    if not isinstance(body, dict):
        return None
    error = body.get("error")
    if isinstance(error, dict):
        return error.get("description") or error.get("message")
    return body.get("message")


class RazorpayGateway(PaymentGateway):
    """RazorpayX Payouts with an inline fund account, basic-auth."""

    name = "razorpay"

    @classmethod
    def default_base_url(cls) -> str:
        return settings.RAZORPAY_BASE_URL

    def is_configured(self) -> bool:
        return bool(
            self.config.razorpay_key_id
            and self.config.razorpay_key_secret
            and self.config.razorpay_account_number
        )

    async def _transfer(
        self, client: httpx.AsyncClient, instruction: PayoutInstruction
    ) -> TransferResult:
        payload = {
            "account_number": self.config.razorpay_account_number,
            "amount": to_paise(instruction.amount),
            "currency": "INR",
            "mode": "IMPS",
            "purpose": "payout",
            "queue_if_low_balance": True,
            "reference_id": instruction.transfer_id,
            "narration": "Fund wallet payout",
            "fund_account": {
                "account_type": "bank_account",
                "bank_account": {
                    "name": instruction.beneficiary_name,
                    "ifsc": instruction.bank_ifsc_code,
                    "account_number": instruction.bank_account_number,
                },
                "contact": {
                    "name": instruction.beneficiary_name,
                    "email": instruction.email,
                    "contact": instruction.phone,
                    "type": "customer",
                },
            },
        }
        response = await client.post(
            f"{self.base_url}/v1/payouts",
            json=payload,
            auth=(self.config.razorpay_key_id, self.config.razorpay_key_secret),
            headers={"X-Payout-Idempotency": instruction.transfer_id},
        )
        body = self._json_or_error(response)
        if body.get("status") in ("rejected", "failed", "reversed"):
            raise GatewayError(self.name, f"payout {body.get('status')}", details=body)
        reference = body.get("id")
        if not reference:
            raise GatewayError(self.name, "response carried no payout id", details=body)
        return TransferResult(self.name, reference, body.get("utr"), body)


class StripeGateway(PaymentGateway):
    """Stripe Connect transfer to the investor's connected account."""

    name = "stripe"

    @classmethod
    def default_base_url(cls) -> str:
        return settings.STRIPE_BASE_URL

    def is_configured(self) -> bool:
        return bool(self.config.stripe_secret_key)

    def validate(self, instruction: PayoutInstruction) -> None:
        super().validate(instruction)
        if not instruction.stripe_account_id:
            raise BusinessRuleViolation(
                "Stripe payouts require the investor's connected account id"
            )

    async def _transfer(
        self, client: httpx.AsyncClient, instruction: PayoutInstruction
    ) -> TransferResult:
        response = await client.post(
            f"{self.base_url}/v1/transfers",
            data={
                "amount": str(to_paise(instruction.amount)),
                "currency": "inr",
                "destination": instruction.stripe_account_id,
                "transfer_group": instruction.transfer_id,
                "metadata[payout_request_id]": str(instruction.payout_id),
            },
            headers={
                "Authorization": f"Bearer {self.config.stripe_secret_key}",
                "Idempotency-Key": instruction.transfer_id,
            },
        )
        body = self._json_or_error(response)
        reference = body.get("id")
        if not reference:
            raise GatewayError(self.name, "response carried no transfer id", details=body)
        return TransferResult(self.name, reference, None, body)


class CashfreeGateway(PaymentGateway):
    """Cashfree Payouts v1: authorize for a bearer token, then direct transfer."""

    name = "cashfree"

    @classmethod
    def default_base_url(cls) -> str:
        return settings.CASHFREE_BASE_URL

    def is_configured(self) -> bool:
        return bool(self.config.cashfree_client_id and self.config.cashfree_client_secret)

    async def _authorize(self, client: httpx.AsyncClient) -> str:
        response = await client.post(
            f"{self.base_url}/payout/v1/authorize",
            headers={
                "X-Client-Id": self.config.cashfree_client_id,
                "X-Client-Secret": self.config.cashfree_client_secret,
            },
        )
        body = self._json_or_error(response)
        token = (body.get("data") or {}).get("token")
        if body.get("status") != "SUCCESS" or not token:
            raise GatewayError(
                self.name, body.get("message") or "authorization failed", details=body
            )
        return token

    async def _transfer(
        self, client: httpx.AsyncClient, instruction: PayoutInstruction
    ) -> TransferResult:
        token = await self._authorize(client)
        response = await client.post(
            f"{self.base_url}/payout/v1/directTransfer",
            json={
                "amount": f"{instruction.amount:.2f}",
                "transferId": instruction.transfer_id,
                "transferMode": "banktransfer",
                "beneDetails": {
                    "bankAccount": instruction.bank_account_number,
                    "ifsc": instruction.bank_ifsc_code,
                    "name": instruction.beneficiary_name,
                    "email": instruction.email,
                    "phone": instruction.phone,
                    "address1": instruction.bank_name,
                },
            },
            headers={"Authorization": f"Bearer {token}"},
        )
        body = self._json_or_error(response)
        if body.get("status") not in ("SUCCESS", "PENDING"):
            raise GatewayError(
                self.name, body.get("message") or "transfer not accepted", details=body
            )
        data = body.get("data") or {}
        reference = data.get("referenceId")
        if not reference:
            raise GatewayError(self.name, "response carried no reference id", details=body)
        return TransferResult(self.name, str(reference), data.get("utr"), body)


GATEWAYS: Dict[str, Type[PaymentGateway]] = {
    RazorpayGateway.name: RazorpayGateway,
    StripeGateway.name: StripeGateway,
    CashfreeGateway.name: CashfreeGateway,
}


def get_gateway(
    name: str, config: PlatformConfig, client: Optional[httpx.AsyncClient] = None
) -> PaymentGateway:
    """Instantiate the gateway registered under ``name`` (case-insensitive)."""
    gateway_cls = GATEWAYS.get(name.lower())
    if gateway_cls is None:
        raise BusinessRuleViolation(
            f"Unknown payment gateway '{name}'. Supported: {', '.join(sorted(GATEWAYS))}"
        )
    return gateway_cls(config, client=client)
