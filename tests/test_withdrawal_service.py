"""
Unit tests for WithdrawalService — the withdrawal state machine.

All repositories are mocked.  Tests cover:
- approve: hold placed, insufficient balance, wrong state, disabled
- reject: hold released only when approved, blank reason
- process: allocation recompute, hold settled and proceeds credited,
  redemption recorded, investor totals refreshed, notice period
"""

from datetime import datetime, timezone
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from settlement.core.exceptions import (
    BusinessRuleViolation,
    InsufficientBalance,
    InvalidTransition,
    NotFoundException,
)
from settlement.models.allocation import AllocationStatus
from settlement.models.requests import SettlementStatus, WithdrawalType
from settlement.models.transaction import TransactionType
from settlement.services.platform_config import PlatformConfig
from settlement.services.withdrawal_service import WithdrawalService

from .conftest import (
    WITHDRAWAL_ID,
    apply_wallet_changes,
    make_allocation,
    make_investor,
    make_wallet,
    make_withdrawal,
    returns_argument,
)

CONFIG = PlatformConfig()

# ────────────────────────────────────────────────────────────────────────────
# Fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def withdrawal_repo():
    repo = AsyncMock()
    repo.update.side_effect = returns_argument
    return repo


@pytest.fixture()
def wallet():
    return make_wallet(available="50000")


@pytest.fixture()
def wallet_repo(wallet):
    repo = AsyncMock()
    repo.get_by_investor.return_value = wallet
    repo.get_fresh.return_value = wallet
    repo.compare_and_swap.side_effect = apply_wallet_changes
    return repo


@pytest.fixture()
def allocation():
    return make_allocation(invested="100000", value="120000")


@pytest.fixture()
def allocation_repo(allocation):
    repo = AsyncMock()
    repo.get_fresh.return_value = allocation
    repo.get_by_investor.return_value = [allocation]
    repo.update.side_effect = returns_argument
    return repo


@pytest.fixture()
def investor():
    return make_investor()


@pytest.fixture()
def investor_repo(investor):
    repo = AsyncMock()
    repo.get.return_value = investor
    repo.get_fresh.return_value = investor
    repo.update.side_effect = returns_argument
    return repo


@pytest.fixture()
def transaction_repo():
    repo = AsyncMock()
    repo.create.side_effect = returns_argument
    return repo


@pytest.fixture()
def service(withdrawal_repo, wallet_repo, allocation_repo, investor_repo, transaction_repo, notifier):
    return WithdrawalService(
        withdrawal_repo, wallet_repo, allocation_repo, investor_repo, transaction_repo, notifier
    )


def _recorded_types(transaction_repo):
    return [call.args[0].transaction_type for call in transaction_repo.create.call_args_list]


# ────────────────────────────────────────────────────────────────────────────
# approve
# ────────────────────────────────────────────────────────────────────────────


class TestApprove:
    """Tests for WithdrawalService.approve."""

    @pytest.mark.asyncio
    async def test_locks_amount_and_records_hold(
        self, service, withdrawal_repo, wallet, transaction_repo, notifier
    ):
        withdrawal_repo.get_fresh.return_value = make_withdrawal(amount="20000")

        result = await service.approve(WITHDRAWAL_ID, "looks fine", CONFIG)

        assert result.status == SettlementStatus.APPROVED
        assert result.admin_notes == "looks fine"
        assert result.reviewed_at is not None
        assert wallet.available_balance == Decimal("30000.00")
        assert wallet.locked_balance == Decimal("20000.00")
        assert _recorded_types(transaction_repo) == [TransactionType.WITHDRAWAL_HOLD]
        hold = transaction_repo.create.call_args.args[0]
        assert hold.payment_reference == f"WITHDRAWAL_{WITHDRAWAL_ID}"
        notifier.enqueue.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_insufficient_balance_changes_nothing(
        self, service, withdrawal_repo, wallet, transaction_repo, notifier
    ):
        withdrawal_repo.get_fresh.return_value = make_withdrawal(amount="60000")

        with pytest.raises(InsufficientBalance):
            await service.approve(WITHDRAWAL_ID, None, CONFIG)

        assert wallet.available_balance == Decimal("50000")
        withdrawal_repo.update.assert_not_awaited()
        transaction_repo.create.assert_not_awaited()
        notifier.enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_only_pending_can_be_approved(self, service, withdrawal_repo):
        withdrawal_repo.get_fresh.return_value = make_withdrawal(status=SettlementStatus.APPROVED)

        with pytest.raises(InvalidTransition) as exc_info:
            await service.approve(WITHDRAWAL_ID, None, CONFIG)
        assert "approved" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_disabled_by_platform_setting(self, service, withdrawal_repo, wallet_repo):
        withdrawal_repo.get_fresh.return_value = make_withdrawal()

        with pytest.raises(BusinessRuleViolation, match="disabled"):
            await service.approve(WITHDRAWAL_ID, None, PlatformConfig(withdrawals_enabled=False))
        wallet_repo.compare_and_swap.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_request(self, service, withdrawal_repo):
        withdrawal_repo.get_fresh.return_value = None

        with pytest.raises(NotFoundException):
            await service.approve(WITHDRAWAL_ID, None, CONFIG)

    @pytest.mark.asyncio
    async def test_investor_without_wallet(self, service, withdrawal_repo, wallet_repo):
        withdrawal_repo.get_fresh.return_value = make_withdrawal()
        wallet_repo.get_by_investor.return_value = None

        with pytest.raises(NotFoundException, match="FundWallet"):
            await service.approve(WITHDRAWAL_ID, None, CONFIG)


# ────────────────────────────────────────────────────────────────────────────
# reject
# ────────────────────────────────────────────────────────────────────────────


class TestReject:
    """Tests for WithdrawalService.reject."""

    @pytest.mark.asyncio
    async def test_rejecting_approved_releases_hold(
        self, service, withdrawal_repo, wallet, transaction_repo
    ):
        wallet.available_balance = Decimal("30000")
        wallet.locked_balance = Decimal("20000")
        withdrawal_repo.get_fresh.return_value = make_withdrawal(
            amount="20000", status=SettlementStatus.APPROVED
        )

        result = await service.reject(WITHDRAWAL_ID, "  bank details mismatch ")

        assert result.status == SettlementStatus.REJECTED
        assert result.rejection_reason == "bank details mismatch"
        assert wallet.available_balance == Decimal("50000.00")
        assert wallet.locked_balance == Decimal("0.00")
        assert _recorded_types(transaction_repo) == [TransactionType.WITHDRAWAL_RELEASE]

    @pytest.mark.asyncio
    async def test_rejecting_pending_leaves_wallet_alone(
        self, service, withdrawal_repo, wallet_repo, transaction_repo, notifier
    ):
        withdrawal_repo.get_fresh.return_value = make_withdrawal()

        result = await service.reject(WITHDRAWAL_ID, "not eligible")

        assert result.status == SettlementStatus.REJECTED
        wallet_repo.compare_and_swap.assert_not_awaited()
        transaction_repo.create.assert_not_awaited()
        notifier.enqueue.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("reason", ["", "   ", None])
    async def test_reason_required(self, service, withdrawal_repo, reason):
        with pytest.raises(BusinessRuleViolation, match="reason"):
            await service.reject(WITHDRAWAL_ID, reason)
        withdrawal_repo.get_fresh.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_processed_cannot_be_rejected(self, service, withdrawal_repo):
        withdrawal_repo.get_fresh.return_value = make_withdrawal(status=SettlementStatus.PROCESSED)

        with pytest.raises(InvalidTransition):
            await service.reject(WITHDRAWAL_ID, "too late")


# ────────────────────────────────────────────────────────────────────────────
# process
# ────────────────────────────────────────────────────────────────────────────


class TestProcess:
    """Tests for WithdrawalService.process."""

    @pytest.mark.asyncio
    async def test_partial_redemption(
        self,
        service,
        withdrawal_repo,
        wallet,
        allocation,
        investor,
        transaction_repo,
        notifier,
    ):
        wallet.available_balance = Decimal("0")
        wallet.locked_balance = Decimal("30000")
        withdrawal_repo.get_fresh.return_value = make_withdrawal(
            amount="30000", status=SettlementStatus.APPROVED
        )

        result = await service.process(WITHDRAWAL_ID, CONFIG)

        assert result.status == SettlementStatus.PROCESSED
        assert result.processed_date is not None
        assert allocation.total_invested == Decimal("70000.00")
        assert allocation.current_value == Decimal("90000.00")
        assert allocation.profit_loss == Decimal("20000.00")
        assert allocation.status == AllocationStatus.ACTIVE
        # Hold dropped, then proceeds credited as a separate step.
        assert wallet.locked_balance == Decimal("0.00")
        assert wallet.available_balance == Decimal("30000.00")
        assert _recorded_types(transaction_repo) == [TransactionType.REDEMPTION]
        assert investor.total_invested == Decimal("70000.00")
        assert investor.current_value == Decimal("90000.00")
        assert investor.total_profit_loss == Decimal("20000.00")
        notifier.enqueue.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_full_redemption_marks_allocation_redeemed(
        self, service, withdrawal_repo, wallet, allocation, investor
    ):
        wallet.locked_balance = Decimal("10000")
        withdrawal_repo.get_fresh.return_value = make_withdrawal(
            amount="10000",
            withdrawal_type=WithdrawalType.FULL,
            status=SettlementStatus.APPROVED,
        )

        await service.process(WITHDRAWAL_ID, CONFIG)

        assert allocation.status == AllocationStatus.REDEEMED
        assert allocation.total_invested == Decimal("0")
        assert allocation.units_held == Decimal("0")
        assert investor.total_invested == Decimal("0")

    @pytest.mark.asyncio
    async def test_pending_cannot_be_processed(self, service, withdrawal_repo, allocation_repo):
        withdrawal_repo.get_fresh.return_value = make_withdrawal()

        with pytest.raises(InvalidTransition):
            await service.process(WITHDRAWAL_ID, CONFIG)
        allocation_repo.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notice_period_not_elapsed(self, service, withdrawal_repo, allocation_repo):
        withdrawal_repo.get_fresh.return_value = make_withdrawal(status=SettlementStatus.APPROVED)

        with pytest.raises(BusinessRuleViolation, match="notice period"):
            await service.process(WITHDRAWAL_ID, PlatformConfig(min_notice_period_days=7))
        allocation_repo.update.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_notice_period_elapsed(self, service, withdrawal_repo, wallet):
        wallet.locked_balance = Decimal("30000")
        withdrawal_repo.get_fresh.return_value = make_withdrawal(
            status=SettlementStatus.APPROVED,
            created_at=datetime(2020, 1, 1),
        )

        result = await service.process(WITHDRAWAL_ID, PlatformConfig(min_notice_period_days=7))

        assert result.status == SettlementStatus.PROCESSED

    @pytest.mark.asyncio
    async def test_missing_allocation(self, service, withdrawal_repo, allocation_repo):
        withdrawal_repo.get_fresh.return_value = make_withdrawal(status=SettlementStatus.APPROVED)
        allocation_repo.get_fresh.return_value = None

        with pytest.raises(NotFoundException, match="FundAllocation"):
            await service.process(WITHDRAWAL_ID, CONFIG)

    @pytest.mark.asyncio
    async def test_processed_at_is_utc(self, service, withdrawal_repo, wallet):
        wallet.locked_balance = Decimal("30000")
        withdrawal_repo.get_fresh.return_value = make_withdrawal(status=SettlementStatus.APPROVED)

        result = await service.process(WITHDRAWAL_ID, CONFIG)

        assert result.processed_date.tzinfo == timezone.utc


class TestListRequests:
    @pytest.mark.asyncio
    async def test_filters_by_status(self, service, withdrawal_repo):
        withdrawal_repo.list_by_status.return_value = [make_withdrawal()]

        result = await service.list_requests(SettlementStatus.PENDING)

        assert len(result) == 1
        withdrawal_repo.list_by_status.assert_awaited_once_with(SettlementStatus.PENDING)
