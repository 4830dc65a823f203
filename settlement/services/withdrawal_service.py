"""
Withdrawal workflow — redeeming part or all of an allocation into the wallet.

State machine::

    pending ──approve──▶ approved ──process──▶ processed
       │                    │
       └──reject──▶ rejected ◀──reject──┘

Approval places a hold of the withdrawal amount on the wallet (available →
locked).  Processing drops that hold and then credits the redemption
proceeds to available as a separate step.  Rejecting an approved request
releases the hold back to available.

Every step is its own committed write.  Preconditions (status, wallet,
balance, platform toggles) are all checked before the first write; a
failure after that point leaves the earlier writes in place.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from settlement.core.exceptions import (
    BusinessRuleViolation,
    InvalidTransition,
    NotFoundException,
)
from settlement.core.money import q_money
from settlement.models.allocation import FundAllocation
from settlement.models.investor import Investor
from settlement.models.notification import NotificationType
from settlement.models.requests import (
    FundWithdrawalRequest,
    SettlementStatus,
    WithdrawalType,
)
from settlement.models.transaction import FundTransaction, TransactionType
from settlement.models.wallet import FundWallet
from settlement.repositories.allocation_repo import AllocationRepository
from settlement.repositories.investor_repo import InvestorRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.repositories.withdrawal_repo import WithdrawalRequestRepository
from settlement.services.allocation_recompute import (
    recompute_after_redemption,
    refresh_investor_totals,
)
from settlement.services.notifications import NotificationService
from settlement.services.platform_config import PlatformConfig
from settlement.services.wallet_ledger import WalletLedger

logger = logging.getLogger(__name__)

RESOURCE = "Withdrawal request"


def _as_aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


class WithdrawalService:
    def __init__(
        self,
        withdrawal_repo: WithdrawalRequestRepository,
        wallet_repo: WalletRepository,
        allocation_repo: AllocationRepository,
        investor_repo: InvestorRepository,
        transaction_repo: TransactionRepository,
        notifier: NotificationService,
    ):
        self._withdrawal_repo = withdrawal_repo
        self._wallet_repo = wallet_repo
        self._allocation_repo = allocation_repo
        self._investor_repo = investor_repo
        self._transaction_repo = transaction_repo
        self._notifier = notifier
        self._ledger = WalletLedger(wallet_repo)

    # ── Queries ──

    async def list_requests(
        self, status: Optional[SettlementStatus] = None
    ) -> List[FundWithdrawalRequest]:
        return await self._withdrawal_repo.list_by_status(status)

    # ── Helpers ──

    async def _get_request(self, request_id: UUID) -> FundWithdrawalRequest:
        request = await self._withdrawal_repo.get_fresh(request_id)
        if request is None:
            raise NotFoundException(RESOURCE, request_id)
        return request

    async def _get_investor(self, investor_id: UUID) -> Investor:
        investor = await self._investor_repo.get(investor_id)
        if investor is None:
            raise NotFoundException("Investor", investor_id)
        return investor

    async def _get_wallet(self, investor_id: UUID) -> FundWallet:
        wallet = await self._wallet_repo.get_by_investor(investor_id)
        if wallet is None:
            raise NotFoundException("FundWallet for investor", investor_id)
        return wallet

    async def _record(
        self,
        request: FundWithdrawalRequest,
        transaction_type: TransactionType,
        notes: str,
    ) -> FundTransaction:
        return await self._transaction_repo.create(
            FundTransaction(
                investor_id=request.investor_id,
                fund_plan_id=request.fund_plan_id,
                allocation_id=request.allocation_id,
                transaction_type=transaction_type,
                amount=q_money(request.withdrawal_amount),
                payment_method="wallet",
                payment_reference=f"WITHDRAWAL_{request.id}",
                notes=notes,
            )
        )

    # ── Transitions ──

    async def approve(
        self, request_id: UUID, admin_notes: Optional[str], config: PlatformConfig
    ) -> FundWithdrawalRequest:
        """pending → approved: hold the amount on the investor's wallet."""
        request = await self._get_request(request_id)
        if request.status != SettlementStatus.PENDING:
            raise InvalidTransition(RESOURCE, request.status.value, SettlementStatus.APPROVED.value)
        if not config.withdrawals_enabled:
            raise BusinessRuleViolation("Withdrawals are currently disabled")

        investor = await self._get_investor(request.investor_id)
        wallet = await self._get_wallet(request.investor_id)
        amount = q_money(request.withdrawal_amount)

        await self._ledger.lock_for_withdrawal(wallet.id, amount)
        await self._record(
            request, TransactionType.WITHDRAWAL_HOLD, f"Withdrawal approved, ₹{amount:,.2f} on hold"
        )

        request.status = SettlementStatus.APPROVED
        request.admin_notes = admin_notes
        request.reviewed_at = datetime.now(timezone.utc)
        request = await self._withdrawal_repo.update(request)
        logger.info(
            "Withdrawal %s approved, ₹%s locked",
            request.id,
            amount,
            extra={"entity_id": str(request.id), "investor_id": str(investor.id)},
        )

        await self._notifier.enqueue(
            user_id=investor.user_id,
            investor_id=investor.id,
            title="Withdrawal Request Approved",
            message=(
                f"Your withdrawal request of ₹{amount:,.2f} has been approved "
                "and will be processed shortly."
            ),
            type=NotificationType.INFO,
            page="withdrawals",
            related_entity_type="withdrawal",
            related_entity_id=request.id,
        )
        return request

    async def reject(self, request_id: UUID, reason: str) -> FundWithdrawalRequest:
        """pending|approved → rejected; an approved request's hold is released."""
        if not reason or not reason.strip():
            raise BusinessRuleViolation("A rejection reason is required")

        request = await self._get_request(request_id)
        if request.status not in (SettlementStatus.PENDING, SettlementStatus.APPROVED):
            raise InvalidTransition(RESOURCE, request.status.value, SettlementStatus.REJECTED.value)

        investor = await self._get_investor(request.investor_id)
        amount = q_money(request.withdrawal_amount)

        if request.status == SettlementStatus.APPROVED:
            wallet = await self._get_wallet(request.investor_id)
            await self._ledger.release_lock(wallet.id, amount)
            await self._record(
                request,
                TransactionType.WITHDRAWAL_RELEASE,
                f"Withdrawal rejected, ₹{amount:,.2f} hold released",
            )

        request.status = SettlementStatus.REJECTED
        request.rejection_reason = reason.strip()
        request.reviewed_at = datetime.now(timezone.utc)
        request = await self._withdrawal_repo.update(request)
        logger.info(
            "Withdrawal %s rejected: %s",
            request.id,
            request.rejection_reason,
            extra={"entity_id": str(request.id), "investor_id": str(investor.id)},
        )

        await self._notifier.enqueue(
            user_id=investor.user_id,
            investor_id=investor.id,
            title="Withdrawal Request Rejected",
            message=(
                f"Your withdrawal request of ₹{amount:,.2f} has been rejected. "
                f"Reason: {request.rejection_reason}"
            ),
            type=NotificationType.ALERT,
            page="withdrawals",
            related_entity_type="withdrawal",
            related_entity_id=request.id,
        )
        return request

    async def process(self, request_id: UUID, config: PlatformConfig) -> FundWithdrawalRequest:
        """
        approved → processed.

        Steps, in order: write the recomputed allocation, drop the hold,
        credit the proceeds, record the redemption, mark the request
        processed, refresh the investor's totals, notify.
        """
        request = await self._get_request(request_id)
        if request.status != SettlementStatus.APPROVED:
            raise InvalidTransition(RESOURCE, request.status.value, SettlementStatus.PROCESSED.value)
        if not config.withdrawals_enabled:
            raise BusinessRuleViolation("Withdrawals are currently disabled")
        if config.min_notice_period_days > 0:
            due = _as_aware(request.created_at) + timedelta(days=config.min_notice_period_days)
            if datetime.now(timezone.utc) < due:
                raise BusinessRuleViolation(
                    f"Withdrawal cannot be processed before {due.date().isoformat()} "
                    f"({config.min_notice_period_days}-day notice period)"
                )

        allocation: Optional[FundAllocation] = await self._allocation_repo.get_fresh(
            request.allocation_id
        )
        if allocation is None:
            raise NotFoundException("FundAllocation", request.allocation_id)
        investor = await self._get_investor(request.investor_id)
        wallet = await self._get_wallet(request.investor_id)
        amount = q_money(request.withdrawal_amount)

        figures = recompute_after_redemption(
            allocation, amount, full=request.withdrawal_type == WithdrawalType.FULL
        )
        for name, value in figures.as_changes().items():
            setattr(allocation, name, value)
        await self._allocation_repo.update(allocation)

        await self._ledger.settle_lock(wallet.id, amount)
        await self._ledger.credit(wallet.id, amount)
        await self._record(
            request,
            TransactionType.REDEMPTION,
            f"Redemption of ₹{amount:,.2f} credited to wallet",
        )

        request.status = SettlementStatus.PROCESSED
        request.processed_date = datetime.now(timezone.utc)
        request = await self._withdrawal_repo.update(request)

        await refresh_investor_totals(investor.id, self._investor_repo, self._allocation_repo)
        logger.info(
            "Withdrawal %s processed: ₹%s redeemed from allocation %s (%s)",
            request.id,
            amount,
            allocation.id,
            figures.status.value,
            extra={
                "entity_id": str(request.id),
                "investor_id": str(investor.id),
                "allocation_id": str(allocation.id),
            },
        )

        await self._notifier.enqueue(
            user_id=investor.user_id,
            investor_id=investor.id,
            title="Withdrawal Processed",
            message=(
                f"Your withdrawal of ₹{amount:,.2f} has been processed and credited "
                "to your wallet."
            ),
            type=NotificationType.TRANSACTION,
            page="wallet",
            related_entity_type="withdrawal",
            related_entity_id=request.id,
        )
        return request
