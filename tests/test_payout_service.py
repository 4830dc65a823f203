"""
Unit tests for PayoutService — wallet cash-out state machine.

Tests cover the manual (UTR) and gateway processing paths, and that every
precondition failure leaves the wallet untouched.
"""

from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from settlement.core.exceptions import (
    BusinessRuleViolation,
    GatewayError,
    GatewayNotConfigured,
    InsufficientBalance,
    InvalidTransition,
    NotFoundException,
)
from settlement.integrations.payment_gateways import TransferResult
from settlement.models.requests import SettlementStatus
from settlement.models.transaction import TransactionType
from settlement.services.payout_service import PayoutService
from settlement.services.platform_config import PlatformConfig

from .conftest import (
    PAYOUT_ID,
    apply_wallet_changes,
    make_investor,
    make_payout,
    make_wallet,
    returns_argument,
)

CONFIG = PlatformConfig()


@pytest.fixture()
def payout_repo():
    repo = AsyncMock()
    repo.update.side_effect = returns_argument
    return repo


@pytest.fixture()
def wallet():
    return make_wallet(available="10000")


@pytest.fixture()
def wallet_repo(wallet):
    repo = AsyncMock()
    repo.get_by_investor.return_value = wallet
    repo.get_fresh.return_value = wallet
    repo.compare_and_swap.side_effect = apply_wallet_changes
    return repo


@pytest.fixture()
def investor_repo():
    repo = AsyncMock()
    repo.get.return_value = make_investor()
    return repo


@pytest.fixture()
def transaction_repo():
    repo = AsyncMock()
    repo.create.side_effect = returns_argument
    return repo


@pytest.fixture()
def gateway():
    client = MagicMock()
    client.name = "razorpay"
    client.ensure_configured = MagicMock()
    client.transfer = AsyncMock(
        return_value=TransferResult("razorpay", "pout_123", "UTR999")
    )
    return client


@pytest.fixture()
def gateway_factory(gateway):
    return MagicMock(return_value=gateway)


@pytest.fixture()
def service(payout_repo, wallet_repo, investor_repo, transaction_repo, notifier, gateway_factory):
    return PayoutService(
        payout_repo,
        wallet_repo,
        investor_repo,
        transaction_repo,
        notifier,
        gateway_factory=gateway_factory,
    )


class TestApproveReject:
    """Approval and rejection never move money."""

    @pytest.mark.asyncio
    async def test_approve(self, service, payout_repo, wallet_repo, notifier):
        payout_repo.get_fresh.return_value = make_payout(status=SettlementStatus.PENDING)

        result = await service.approve(PAYOUT_ID, "ok")

        assert result.status == SettlementStatus.APPROVED
        assert result.admin_notes == "ok"
        wallet_repo.compare_and_swap.assert_not_awaited()
        notifier.enqueue.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_approve_twice_rejected(self, service, payout_repo):
        payout_repo.get_fresh.return_value = make_payout(status=SettlementStatus.APPROVED)

        with pytest.raises(InvalidTransition):
            await service.approve(PAYOUT_ID, None)

    @pytest.mark.asyncio
    async def test_reject_approved(self, service, payout_repo, wallet_repo):
        payout_repo.get_fresh.return_value = make_payout(status=SettlementStatus.APPROVED)

        result = await service.reject(PAYOUT_ID, "KYC pending")

        assert result.status == SettlementStatus.REJECTED
        assert result.rejection_reason == "KYC pending"
        wallet_repo.compare_and_swap.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reject_requires_reason(self, service):
        with pytest.raises(BusinessRuleViolation):
            await service.reject(PAYOUT_ID, " ")


class TestProcessManual:
    """Processing with a UTR obtained from a manual bank transfer."""

    @pytest.mark.asyncio
    async def test_debits_wallet_and_records_reference(
        self, service, payout_repo, wallet, transaction_repo, gateway_factory, notifier
    ):
        payout_repo.get_fresh.return_value = make_payout(amount="4000")

        result = await service.process(PAYOUT_ID, CONFIG, utr_number=" HDFC123 ")

        assert result.status == SettlementStatus.PROCESSED
        assert result.utr_number == "HDFC123"
        assert result.payout_gateway is None
        assert wallet.available_balance == Decimal("6000.00")
        assert wallet.total_withdrawn == Decimal("4000.00")
        txn = transaction_repo.create.call_args.args[0]
        assert txn.transaction_type == TransactionType.WALLET_WITHDRAWAL
        assert txn.payment_reference == "HDFC123"
        assert txn.payment_method == "bank_transfer"
        gateway_factory.assert_not_called()
        assert "HDFC123" in notifier.enqueue.call_args.kwargs["message"]

    @pytest.mark.asyncio
    async def test_insufficient_balance(self, service, payout_repo, wallet_repo, transaction_repo):
        payout_repo.get_fresh.return_value = make_payout(amount="10000.01")

        with pytest.raises(InsufficientBalance):
            await service.process(PAYOUT_ID, CONFIG, utr_number="UTR1")
        wallet_repo.compare_and_swap.assert_not_awaited()
        transaction_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "utr, gateway_name",
        [(None, None), ("", "  "), ("UTR1", "razorpay")],
    )
    async def test_exactly_one_path_required(self, service, payout_repo, utr, gateway_name):
        with pytest.raises(BusinessRuleViolation, match="exactly one"):
            await service.process(PAYOUT_ID, CONFIG, utr_number=utr, gateway=gateway_name)
        payout_repo.get_fresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_payouts_disabled(self, service, payout_repo, wallet_repo):
        payout_repo.get_fresh.return_value = make_payout()

        with pytest.raises(BusinessRuleViolation, match="disabled"):
            await service.process(PAYOUT_ID, PlatformConfig(payouts_enabled=False), utr_number="U")
        wallet_repo.compare_and_swap.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pending_cannot_be_processed(self, service, payout_repo):
        payout_repo.get_fresh.return_value = make_payout(status=SettlementStatus.PENDING)

        with pytest.raises(InvalidTransition):
            await service.process(PAYOUT_ID, CONFIG, utr_number="U")

    @pytest.mark.asyncio
    async def test_missing_wallet(self, service, payout_repo, wallet_repo):
        payout_repo.get_fresh.return_value = make_payout()
        wallet_repo.get_by_investor.return_value = None

        with pytest.raises(NotFoundException):
            await service.process(PAYOUT_ID, CONFIG, utr_number="U")


class TestProcessGateway:
    """Processing through a payment gateway."""

    @pytest.mark.asyncio
    async def test_successful_transfer(
        self, service, payout_repo, wallet, transaction_repo, gateway, gateway_factory
    ):
        payout_repo.get_fresh.return_value = make_payout(amount="2500")

        result = await service.process(PAYOUT_ID, CONFIG, gateway="Razorpay")

        gateway_factory.assert_called_once_with("razorpay", CONFIG)
        gateway.ensure_configured.assert_called_once()
        instruction = gateway.transfer.call_args.args[0]
        assert instruction.amount == Decimal("2500.00")
        assert instruction.payout_id == PAYOUT_ID
        assert result.utr_number == "UTR999"
        assert result.payout_gateway == "razorpay"
        assert wallet.available_balance == Decimal("7500.00")
        txn = transaction_repo.create.call_args.args[0]
        assert txn.payment_method == "razorpay"
        assert txn.payment_reference == "pout_123"

    @pytest.mark.asyncio
    async def test_reference_used_when_gateway_returns_no_utr(
        self, service, payout_repo, gateway
    ):
        gateway.transfer.return_value = TransferResult("razorpay", "pout_456")
        payout_repo.get_fresh.return_value = make_payout()

        result = await service.process(PAYOUT_ID, CONFIG, gateway="razorpay")

        assert result.utr_number == "pout_456"

    @pytest.mark.asyncio
    async def test_failed_transfer_leaves_wallet_untouched(
        self, service, payout_repo, wallet, wallet_repo, transaction_repo, gateway
    ):
        gateway.transfer.side_effect = GatewayError("razorpay", "payout rejected")
        payout_repo.get_fresh.return_value = make_payout()

        with pytest.raises(GatewayError):
            await service.process(PAYOUT_ID, CONFIG, gateway="razorpay")

        assert wallet.available_balance == Decimal("10000")
        wallet_repo.compare_and_swap.assert_not_awaited()
        transaction_repo.create.assert_not_awaited()
        payout_repo.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unconfigured_gateway(self, service, payout_repo, wallet_repo, gateway):
        gateway.ensure_configured.side_effect = GatewayNotConfigured("razorpay")
        payout_repo.get_fresh.return_value = make_payout()

        with pytest.raises(GatewayNotConfigured) as exc_info:
            await service.process(PAYOUT_ID, CONFIG, gateway="razorpay")

        assert exc_info.value.status_code == 412
        gateway.transfer.assert_not_awaited()
        wallet_repo.compare_and_swap.assert_not_awaited()
