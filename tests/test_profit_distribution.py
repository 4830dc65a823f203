"""
Tests for the profit distribution engine against a real SQLite database.

Tests cover:
- distributable profit arithmetic
- manual distribution: the 10% → 10% scenario (5,000 then 4,500),
  percentage bounds, failure isolation between allocations
- monthly auto-payout: idempotency within a month, wallet-less investors,
  resume after a partial failure
"""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.future import select

from settlement.core.exceptions import BusinessRuleViolation
from settlement.models.allocation import AllocationStatus
from settlement.models.notification import Notification
from settlement.models.plan import FundPlan, PayoutFrequency
from settlement.models.transaction import FundTransaction, TransactionType
from settlement.models.wallet import FundWallet
from settlement.services.profit_distribution import (
    ProfitDistributionService,
    distributable_profit,
    month_key,
)
from settlement.services.wallet_ledger import WalletLedger

from .conftest import (
    INVESTOR_ID,
    INVESTOR_ID_2,
    PLAN_ID,
    make_allocation,
    make_investor,
    make_plan,
    make_wallet,
    persist,
)

RUN_AT = datetime(2025, 3, 15, 10, 0, tzinfo=timezone.utc)


async def _wallet_of(session_factory, investor_id) -> FundWallet:
    async with session_factory() as session:
        result = await session.execute(select(FundWallet).where(FundWallet.investor_id == investor_id))
        return result.scalars().one()


async def _transactions(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(FundTransaction))
        return list(result.scalars().all())


class TestDistributableProfit:
    """Pure arithmetic of distributable_profit."""

    def test_gain_minus_already_paid(self):
        allocation = make_allocation(invested="200000", value="250000")
        assert distributable_profit(allocation, Decimal("5000")) == Decimal("45000.00")

    def test_never_negative(self):
        allocation = make_allocation(invested="100000", value="90000")
        assert distributable_profit(allocation, 0) == Decimal("0")

    def test_overpaid_floors_at_zero(self):
        allocation = make_allocation(invested="100", value="150")
        assert distributable_profit(allocation, "80") == Decimal("0")

    def test_month_key(self):
        assert month_key(RUN_AT) == "2025-03"


# ────────────────────────────────────────────────────────────────────────────
# Manual distribution
# ────────────────────────────────────────────────────────────────────────────


class TestManualDistribution:
    """ProfitDistributionService.distribute_manual on SQLite."""

    @pytest.mark.asyncio
    async def test_repeated_runs_pay_from_remaining_profit(self, session_factory):
        await persist(
            session_factory,
            make_plan(auto_payout_enabled=False),
            make_investor(),
            make_wallet(),
            make_allocation(invested="200000", value="250000"),
        )
        service = ProfitDistributionService(session_factory, concurrency=1)

        preview = await service.preview()
        assert preview.total_distributable == Decimal("50000.00")

        first = await service.distribute_manual(Decimal("10"))
        assert first.total_paid == Decimal("5000.00")
        assert len(first.succeeded) == 1

        preview = await service.preview()
        assert preview.allocations[0].already_paid == Decimal("5000.00")
        assert preview.total_distributable == Decimal("45000.00")

        second = await service.distribute_manual(10)
        assert second.total_paid == Decimal("4500.00")

        wallet = await _wallet_of(session_factory, INVESTOR_ID)
        assert wallet.available_balance == Decimal("9500.00")
        payouts = [
            t for t in await _transactions(session_factory)
            if t.transaction_type == TransactionType.PROFIT_PAYOUT
        ]
        assert sorted(t.amount for t in payouts) == [Decimal("4500.00"), Decimal("5000.00")]
        assert all(t.payment_reference.startswith("MANUAL-") for t in payouts)

    @pytest.mark.asyncio
    async def test_full_percentage_exhausts_profit(self, session_factory):
        await persist(
            session_factory,
            make_plan(auto_payout_enabled=False),
            make_investor(),
            make_wallet(),
            make_allocation(invested="1000", value="1200"),
        )
        service = ProfitDistributionService(session_factory, concurrency=1)

        report = await service.distribute_manual(100)
        assert report.total_paid == Decimal("200.00")

        again = await service.distribute_manual(100)
        assert again.outcomes == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("percentage", [0, Decimal("0.5"), 101])
    async def test_percentage_out_of_range(self, session_factory, percentage):
        service = ProfitDistributionService(session_factory)

        with pytest.raises(BusinessRuleViolation, match="between 1 and 100"):
            await service.distribute_manual(percentage)

    @pytest.mark.asyncio
    async def test_ineligible_allocations_skipped(self, session_factory):
        await persist(
            session_factory,
            make_plan(auto_payout_enabled=False),
            make_investor(),
            make_wallet(),
            make_allocation(id=uuid4(), invested="1000", value="900"),
            make_allocation(
                id=uuid4(), invested="0", value="0", status=AllocationStatus.REDEEMED
            ),
        )
        service = ProfitDistributionService(session_factory, concurrency=1)

        assert (await service.preview()).allocations == []
        report = await service.distribute_manual(50)
        assert report.outcomes == []

    @pytest.mark.asyncio
    async def test_one_failure_does_not_block_others(self, session_factory):
        # Investor 2 has no wallet: their unit fails, investor 1 is still paid.
        await persist(
            session_factory,
            make_plan(auto_payout_enabled=False),
            make_investor(),
            make_investor(id=INVESTOR_ID_2, user_id="user-2", investor_code="INV2"),
            make_wallet(),
            make_allocation(id=uuid4(), invested="1000", value="2000"),
            make_allocation(
                id=uuid4(), investor_id=INVESTOR_ID_2, invested="1000", value="3000"
            ),
        )
        service = ProfitDistributionService(session_factory, concurrency=1)

        report = await service.distribute_manual(10)

        assert len(report.succeeded) == 1
        assert len(report.failed) == 1
        assert report.failed[0].investor_id == INVESTOR_ID_2
        assert "FundWallet" in report.failed[0].error
        assert report.total_paid == Decimal("100.00")
        wallet = await _wallet_of(session_factory, INVESTOR_ID)
        assert wallet.available_balance == Decimal("100.00")

    @pytest.mark.asyncio
    async def test_notifies_each_paid_investor(self, session_factory):
        await persist(
            session_factory,
            make_plan(auto_payout_enabled=False),
            make_investor(),
            make_wallet(),
            make_allocation(invested="1000", value="2000"),
        )
        service = ProfitDistributionService(session_factory, concurrency=1)

        await service.distribute_manual(10, admin_notes="Q1 distribution")

        async with session_factory() as session:
            rows = (await session.execute(select(Notification))).scalars().all()
        assert len(rows) == 1
        assert rows[0].user_id == "user-1"
        txn = (await _transactions(session_factory))[0]
        assert "Q1 distribution" in txn.notes


# ────────────────────────────────────────────────────────────────────────────
# Automated monthly payout
# ────────────────────────────────────────────────────────────────────────────


class TestMonthlyAutoPayout:
    """ProfitDistributionService.run_monthly_auto_payout on SQLite."""

    async def _seed(self, session_factory, with_second_wallet: bool = True):
        rows = [
            make_plan(expected_return_percent="1"),
            make_investor(),
            make_investor(id=INVESTOR_ID_2, user_id="user-2", investor_code="INV2"),
            make_wallet(),
            make_allocation(id=uuid4(), invested="100000", value="100000"),
            make_allocation(id=uuid4(), investor_id=INVESTOR_ID_2, invested="50000", value="50000"),
        ]
        if with_second_wallet:
            rows.insert(4, make_wallet(id=None, investor_id=INVESTOR_ID_2))
        await persist(session_factory, *rows)

    @pytest.mark.asyncio
    async def test_pays_monthly_return_and_stamps_plan(self, session_factory):
        await self._seed(session_factory)
        service = ProfitDistributionService(session_factory)

        report = await service.run_monthly_auto_payout(RUN_AT)

        assert report.month == "2025-03"
        assert report.plans_paid == ["INCOME-01"]
        assert report.payouts_created == 2
        assert report.total_paid == Decimal("1500.00")
        assert (await _wallet_of(session_factory, INVESTOR_ID)).available_balance == Decimal("1000.00")
        assert (await _wallet_of(session_factory, INVESTOR_ID_2)).available_balance == Decimal("500.00")
        txns = await _transactions(session_factory)
        assert {t.payment_reference for t in txns} == {"AUTO-INCOME-01-2025-03"}
        async with session_factory() as session:
            plan = await session.get(FundPlan, PLAN_ID)
        assert plan.last_auto_payout_month == "2025-03"

    @pytest.mark.asyncio
    async def test_second_run_same_month_is_a_no_op(self, session_factory):
        await self._seed(session_factory)
        service = ProfitDistributionService(session_factory)
        await service.run_monthly_auto_payout(RUN_AT)
        before = await _wallet_of(session_factory, INVESTOR_ID)

        report = await service.run_monthly_auto_payout(RUN_AT.replace(day=28))

        assert report.plans_already_processed == ["INCOME-01"]
        assert report.payouts_created == 0
        assert len(await _transactions(session_factory)) == 2
        after = await _wallet_of(session_factory, INVESTOR_ID)
        assert after.available_balance == before.available_balance
        assert after.version == before.version

    @pytest.mark.asyncio
    async def test_next_month_pays_again(self, session_factory):
        await self._seed(session_factory)
        service = ProfitDistributionService(session_factory)
        await service.run_monthly_auto_payout(RUN_AT)

        report = await service.run_monthly_auto_payout(datetime(2025, 4, 1, tzinfo=timezone.utc))

        assert report.payouts_created == 2
        assert (await _wallet_of(session_factory, INVESTOR_ID)).available_balance == Decimal("2000.00")

    @pytest.mark.asyncio
    async def test_investor_without_wallet_is_skipped(self, session_factory):
        await self._seed(session_factory, with_second_wallet=False)
        service = ProfitDistributionService(session_factory)

        report = await service.run_monthly_auto_payout(RUN_AT)

        assert report.payouts_created == 1
        assert report.skipped_no_wallet == 1
        assert report.plans_paid == ["INCOME-01"]

    @pytest.mark.asyncio
    async def test_non_monthly_and_disabled_plans_ignored(self, session_factory):
        await persist(
            session_factory,
            make_plan(frequency=PayoutFrequency.QUARTERLY),
            make_investor(),
            make_wallet(),
            make_allocation(),
        )
        service = ProfitDistributionService(session_factory)

        report = await service.run_monthly_auto_payout(RUN_AT)

        assert report.plans_paid == []
        assert await _transactions(session_factory) == []

    @pytest.mark.asyncio
    async def test_partial_failure_resumes_without_double_payment(
        self, session_factory, monkeypatch
    ):
        await self._seed(session_factory)
        second_wallet = await _wallet_of(session_factory, INVESTOR_ID_2)
        original_credit = WalletLedger.credit

        async def flaky_credit(self, wallet_id, amount):
            if wallet_id == second_wallet.id:
                raise ConnectionError("database went away")
            return await original_credit(self, wallet_id, amount)

        monkeypatch.setattr(WalletLedger, "credit", flaky_credit)
        service = ProfitDistributionService(session_factory)

        first = await service.run_monthly_auto_payout(RUN_AT)

        assert first.plans_incomplete == ["INCOME-01"]
        assert first.payouts_created == 1
        assert len(first.failures) == 1
        async with session_factory() as session:
            plan = await session.get(FundPlan, PLAN_ID)
        assert plan.last_auto_payout_month is None

        monkeypatch.setattr(WalletLedger, "credit", original_credit)
        second = await service.run_monthly_auto_payout(RUN_AT)

        assert second.plans_paid == ["INCOME-01"]
        assert second.payouts_created == 1
        assert (await _wallet_of(session_factory, INVESTOR_ID)).available_balance == Decimal("1000.00")
        assert (await _wallet_of(session_factory, INVESTOR_ID_2)).available_balance == Decimal("500.00")
        assert len(await _transactions(session_factory)) == 2

    @pytest.mark.asyncio
    async def test_month_before_stamp_is_refused(self, session_factory):
        await self._seed(session_factory)
        service = ProfitDistributionService(session_factory)
        await service.run_monthly_auto_payout(RUN_AT)

        with pytest.raises(BusinessRuleViolation, match="already paid for 2025-03"):
            await service.run_monthly_auto_payout(datetime(2025, 2, 1, tzinfo=timezone.utc))

        again = await service.run_monthly_auto_payout(RUN_AT)
        assert again.plans_already_processed == ["INCOME-01"]
        assert again.payouts_created == 0
        txns = await _transactions(session_factory)
        assert {t.payment_reference for t in txns} == {"AUTO-INCOME-01-2025-03"}
        assert len(txns) == 2
        async with session_factory() as session:
            plan = await session.get(FundPlan, PLAN_ID)
        assert plan.last_auto_payout_month == "2025-03"
