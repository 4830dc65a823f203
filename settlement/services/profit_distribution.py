"""
Profit distribution engine.

Distributable profit of an allocation is its unrealised gain minus every
completed ``profit_payout`` already recorded against it, floored at zero.
Paying ``P`` therefore lowers the next computation by exactly ``P``, which
makes repeated manual runs safe.

Two ways to pay it out:

- **Manual** — the admin picks a percentage; every eligible allocation is
  settled as its own unit of work in its own database session.  Units run
  concurrently up to ``DISTRIBUTION_CONCURRENCY``; allocations of the same
  investor are settled one after another because they share a wallet.
  One unit failing never stops the others; the run returns a report.
- **Automated monthly** — plans flagged for monthly auto-payout pay
  ``total_invested × expected_return_percent / 100`` per active allocation,
  then get stamped with the month.  A stamped plan is skipped by any later
  run in the same month.  Each payout carries the reference
  ``AUTO-<plan_code>-<YYYY-MM>`` so a run interrupted half-way resumes
  without paying anyone twice.
"""

import asyncio
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement.core.config import settings
from settlement.core.exceptions import AppException, BusinessRuleViolation, NotFoundException
from settlement.core.money import HUNDRED, ZERO, floor_zero, percent_of, q_money, to_decimal
from settlement.models.allocation import AllocationStatus, FundAllocation
from settlement.models.investor import Investor
from settlement.models.notification import Notification, NotificationType
from settlement.models.plan import FundPlan
from settlement.models.transaction import FundTransaction, TransactionType
from settlement.models.wallet import FundWallet
from settlement.repositories.allocation_repo import AllocationRepository
from settlement.repositories.investor_repo import InvestorRepository
from settlement.repositories.notification_repo import NotificationRepository
from settlement.repositories.plan_repo import FundPlanRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.services.notifications import NotificationService
from settlement.services.wallet_ledger import WalletLedger

logger = logging.getLogger(__name__)

MIN_PERCENTAGE = Decimal("1")
MAX_PERCENTAGE = Decimal("100")


def distributable_profit(allocation: FundAllocation, already_paid: Any) -> Decimal:
    """max(0, (current_value − total_invested) − already_paid)."""
    gain = to_decimal(allocation.current_value) - to_decimal(allocation.total_invested)
    return q_money(floor_zero(gain - to_decimal(already_paid)))


def month_key(now: datetime) -> str:
    return now.strftime("%Y-%m")


@dataclass(frozen=True)
class EligibleAllocation:
    allocation_id: UUID
    investor_id: UUID
    fund_plan_id: UUID
    total_invested: Decimal
    current_value: Decimal
    already_paid: Decimal
    distributable: Decimal


@dataclass(frozen=True)
class DistributionPreview:
    allocations: List[EligibleAllocation]

    @property
    def total_distributable(self) -> Decimal:
        return sum((a.distributable for a in self.allocations), ZERO)


@dataclass(frozen=True)
class PayoutOutcome:
    allocation_id: UUID
    investor_id: UUID
    amount: Decimal
    succeeded: bool
    error: Optional[str] = None


@dataclass
class DistributionReport:
    percentage: Decimal
    outcomes: List[PayoutOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[PayoutOutcome]:
        return [o for o in self.outcomes if o.succeeded]

    @property
    def failed(self) -> List[PayoutOutcome]:
        return [o for o in self.outcomes if not o.succeeded]

    @property
    def total_paid(self) -> Decimal:
        return sum((o.amount for o in self.succeeded), ZERO)


@dataclass
class AutoPayoutReport:
    month: str
    plans_paid: List[str] = field(default_factory=list)
    plans_already_processed: List[str] = field(default_factory=list)
    plans_incomplete: List[str] = field(default_factory=list)
    payouts_created: int = 0
    skipped_no_wallet: int = 0
    failures: List[PayoutOutcome] = field(default_factory=list)
    total_paid: Decimal = ZERO


class _Repos:
    """The repositories of one unit of work, all bound to the same session."""

    def __init__(self, session: AsyncSession):
        self.allocations = AllocationRepository(FundAllocation, session)
        self.investors = InvestorRepository(Investor, session)
        self.transactions = TransactionRepository(FundTransaction, session)
        self.wallets = WalletRepository(FundWallet, session)
        self.ledger = WalletLedger(self.wallets)
        self.notifier = NotificationService(NotificationRepository(Notification, session))


class ProfitDistributionService:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        concurrency: int = settings.DISTRIBUTION_CONCURRENCY,
    ):
        self._session_factory = session_factory
        self._concurrency = max(1, concurrency)

    # ── Preview ──

    async def preview(self) -> DistributionPreview:
        """Active allocations with distributable profit > 0, in creation order."""
        async with self._session_factory() as session:
            repos = _Repos(session)
            allocations = await repos.allocations.get_active()
            paid = await repos.transactions.profit_paid_by_allocation(
                [a.id for a in allocations]
            )

        eligible = []
        for allocation in allocations:
            already_paid = paid.get(allocation.id, ZERO)
            amount = distributable_profit(allocation, already_paid)
            if amount > ZERO:
                eligible.append(
                    EligibleAllocation(
                        allocation_id=allocation.id,
                        investor_id=allocation.investor_id,
                        fund_plan_id=allocation.fund_plan_id,
                        total_invested=to_decimal(allocation.total_invested),
                        current_value=to_decimal(allocation.current_value),
                        already_paid=q_money(already_paid),
                        distributable=amount,
                    )
                )
        return DistributionPreview(eligible)

    # ── Manual distribution ──

    async def distribute_manual(
        self, percentage: Any, admin_notes: Optional[str] = None
    ) -> DistributionReport:
        pct = to_decimal(percentage)
        if not MIN_PERCENTAGE <= pct <= MAX_PERCENTAGE:
            raise BusinessRuleViolation(
                f"Payout percentage must be between {MIN_PERCENTAGE} and {MAX_PERCENTAGE}"
            )

        preview = await self.preview()
        by_investor: "OrderedDict[UUID, List[EligibleAllocation]]" = OrderedDict()
        for item in preview.allocations:
            by_investor.setdefault(item.investor_id, []).append(item)

        semaphore = asyncio.Semaphore(self._concurrency)
        report = DistributionReport(percentage=pct)

        async def settle_investor(items: List[EligibleAllocation]) -> List[PayoutOutcome]:
            async with semaphore:
                return [await self._settle_manual_unit(item, pct, admin_notes) for item in items]

        results = await asyncio.gather(*(settle_investor(items) for items in by_investor.values()))
        for outcomes in results:
            report.outcomes.extend(outcomes)

        logger.info(
            "Manual distribution at %s%%: %d paid (₹%s), %d failed",
            pct,
            len(report.succeeded),
            report.total_paid,
            len(report.failed),
        )
        return report

    async def _settle_manual_unit(
        self, item: EligibleAllocation, pct: Decimal, admin_notes: Optional[str]
    ) -> PayoutOutcome:
        """Pay one allocation; any failure is captured in the outcome."""
        try:
            async with self._session_factory() as session:
                repos = _Repos(session)
                allocation = await repos.allocations.get_fresh(item.allocation_id)
                if allocation is None or allocation.status != AllocationStatus.ACTIVE:
                    raise BusinessRuleViolation("Allocation is no longer active")

                # Recomputed inside the unit so a concurrent run cannot pay the same gain twice.
                paid = await repos.transactions.profit_paid_by_allocation([allocation.id])
                distributable = distributable_profit(allocation, paid.get(allocation.id, ZERO))
                amount = q_money(distributable * pct / HUNDRED)
                if amount <= ZERO:
                    raise BusinessRuleViolation("No distributable profit left")

                wallet = await repos.wallets.get_by_investor(allocation.investor_id)
                if wallet is None:
                    raise NotFoundException("FundWallet for investor", allocation.investor_id)
                investor = await repos.investors.get(allocation.investor_id)

                await repos.ledger.credit(wallet.id, amount)
                notes = f"Manual profit distribution at {pct}% of ₹{distributable:,.2f}"
                if admin_notes:
                    notes = f"{notes} - {admin_notes}"
                await repos.transactions.create(
                    FundTransaction(
                        investor_id=allocation.investor_id,
                        fund_plan_id=allocation.fund_plan_id,
                        allocation_id=allocation.id,
                        transaction_type=TransactionType.PROFIT_PAYOUT,
                        amount=amount,
                        payment_method="wallet",
                        payment_reference=f"MANUAL-{month_key(datetime.now(timezone.utc))}",
                        notes=notes,
                    )
                )
                logger.info(
                    "Profit ₹%s paid on allocation %s",
                    amount,
                    allocation.id,
                    extra={
                        "allocation_id": str(allocation.id),
                        "investor_id": str(allocation.investor_id),
                        "amount": str(amount),
                    },
                )
                if investor is not None:
                    await repos.notifier.enqueue(
                        user_id=investor.user_id,
                        investor_id=investor.id,
                        title="Profit Distributed",
                        message=(
                            f"₹{amount:,.2f} profit has been credited to your wallet."
                        ),
                        type=NotificationType.DIVIDEND,
                        page="wallet",
                        related_entity_type="allocation",
                        related_entity_id=allocation.id,
                    )
                return PayoutOutcome(item.allocation_id, item.investor_id, amount, True)
        except Exception as exc:
            message = exc.message if isinstance(exc, AppException) else str(exc)
            logger.warning(
                "Profit payout on allocation %s failed: %s",
                item.allocation_id,
                message,
                exc_info=not isinstance(exc, AppException),
                extra={"allocation_id": str(item.allocation_id)},
            )
            return PayoutOutcome(item.allocation_id, item.investor_id, ZERO, False, message)

    # ── Automated monthly payout ──

    async def run_monthly_auto_payout(self, now: Optional[datetime] = None) -> AutoPayoutReport:
        """
        Pay every due monthly plan for the month of ``now`` (default: the
        current UTC month).

        A month earlier than any plan's stamp is refused before anything is
        paid; YYYY-MM keys compare chronologically as strings.
        """
        month = month_key(now or datetime.now(timezone.utc))
        report = AutoPayoutReport(month=month)

        async with self._session_factory() as session:
            plans = await FundPlanRepository(FundPlan, session).get_monthly_auto_payout_plans()

        ahead = [p for p in plans if p.last_auto_payout_month and p.last_auto_payout_month > month]
        if ahead:
            raise BusinessRuleViolation(
                f"Cannot run auto-payout for {month}: plan {ahead[0].plan_code} "
                f"was already paid for {ahead[0].last_auto_payout_month}"
            )

        for plan in plans:
            if plan.last_auto_payout_month == month:
                logger.info(
                    "Auto-payout for plan %s already processed for %s",
                    plan.plan_code,
                    month,
                    extra={"plan_id": str(plan.id)},
                )
                report.plans_already_processed.append(plan.plan_code)
                continue
            if to_decimal(plan.expected_return_percent) <= ZERO:
                continue
            await self._auto_payout_plan(plan, month, report)

        logger.info(
            "Monthly auto-payout %s: %d payouts (₹%s), %d plans paid, %d already processed",
            month,
            report.payouts_created,
            report.total_paid,
            len(report.plans_paid),
            len(report.plans_already_processed),
        )
        return report

    async def _auto_payout_plan(self, plan: FundPlan, month: str, report: AutoPayoutReport) -> None:
        reference = f"AUTO-{plan.plan_code}-{month}"
        async with self._session_factory() as session:
            allocations = await AllocationRepository(FundAllocation, session).get_active_by_plan(
                plan.id
            )

        failures = 0
        for allocation in allocations:
            if to_decimal(allocation.total_invested) <= ZERO:
                continue
            try:
                paid = await self._auto_payout_allocation(plan, allocation, reference, report)
            except Exception as exc:
                failures += 1
                message = exc.message if isinstance(exc, AppException) else str(exc)
                logger.warning(
                    "Auto-payout %s on allocation %s failed: %s",
                    reference,
                    allocation.id,
                    message,
                    exc_info=not isinstance(exc, AppException),
                    extra={"allocation_id": str(allocation.id), "plan_id": str(plan.id)},
                )
                report.failures.append(
                    PayoutOutcome(allocation.id, allocation.investor_id, ZERO, False, message)
                )
                continue
            if paid is not None:
                report.payouts_created += 1
                report.total_paid += paid

        if failures:
            # Left unstamped; the next run retries only the allocations that failed.
            report.plans_incomplete.append(plan.plan_code)
            return

        async with self._session_factory() as session:
            plans = FundPlanRepository(FundPlan, session)
            fresh = await plans.get_fresh(plan.id)
            if fresh is None:
                raise NotFoundException("FundPlan", plan.id)
            fresh.last_auto_payout_month = month
            await plans.update(fresh)
        report.plans_paid.append(plan.plan_code)
        logger.info("Plan %s stamped for %s", plan.plan_code, month, extra={"plan_id": str(plan.id)})

    async def _auto_payout_allocation(
        self,
        plan: FundPlan,
        allocation: FundAllocation,
        reference: str,
        report: AutoPayoutReport,
    ) -> Optional[Decimal]:
        """Pay one allocation its monthly return; ``None`` when skipped."""
        async with self._session_factory() as session:
            repos = _Repos(session)
            if await repos.transactions.has_reference(allocation.id, reference):
                return None

            wallet = await repos.wallets.get_by_investor(allocation.investor_id)
            if wallet is None:
                logger.warning(
                    "Auto-payout %s skipped allocation %s: investor has no wallet",
                    reference,
                    allocation.id,
                    extra={"investor_id": str(allocation.investor_id)},
                )
                report.skipped_no_wallet += 1
                return None

            amount = percent_of(allocation.total_invested, plan.expected_return_percent)
            if amount <= ZERO:
                return None

            await repos.ledger.credit(wallet.id, amount)
            await repos.transactions.create(
                FundTransaction(
                    investor_id=allocation.investor_id,
                    fund_plan_id=plan.id,
                    allocation_id=allocation.id,
                    transaction_type=TransactionType.PROFIT_PAYOUT,
                    amount=amount,
                    payment_method="wallet",
                    payment_reference=reference,
                    notes=(
                        f"Automated monthly payout for {plan.plan_name} "
                        f"at {plan.expected_return_percent}%"
                    ),
                )
            )
            investor = await repos.investors.get(allocation.investor_id)
            if investor is not None:
                await repos.notifier.enqueue(
                    user_id=investor.user_id,
                    investor_id=investor.id,
                    title="Monthly Profit Credited",
                    message=(
                        f"₹{amount:,.2f} monthly profit from {plan.plan_name} "
                        "has been credited to your wallet."
                    ),
                    type=NotificationType.DIVIDEND,
                    page="wallet",
                    related_entity_type="allocation",
                    related_entity_id=allocation.id,
                )
            return amount
