"""
Test-data reset for staging environments.

Disabled unless ``ALLOW_TEST_DATA_RESET`` is set, and even then only runs
when the caller passes the literal confirmation ``"RESET"``.  Investor and
wallet records survive (zeroed); everything derived from activity is
removed.
"""

import logging
from typing import Dict

from settlement.core.config import Settings, settings
from settlement.core.exceptions import BusinessRuleViolation
from settlement.core.money import ZERO
from settlement.models.investor import InvestorStatus, RequestStatus
from settlement.repositories.allocation_repo import AllocationRepository
from settlement.repositories.investor_repo import InvestorRepository, InvestorRequestRepository
from settlement.repositories.payout_repo import PayoutRequestRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.repositories.withdrawal_repo import WithdrawalRequestRepository

logger = logging.getLogger(__name__)

CONFIRMATION = "RESET"


class MaintenanceService:
    def __init__(
        self,
        investor_repo: InvestorRepository,
        request_repo: InvestorRequestRepository,
        wallet_repo: WalletRepository,
        allocation_repo: AllocationRepository,
        transaction_repo: TransactionRepository,
        withdrawal_repo: WithdrawalRequestRepository,
        payout_repo: PayoutRequestRepository,
        app_settings: Settings = settings,
    ):
        self._investor_repo = investor_repo
        self._request_repo = request_repo
        self._wallet_repo = wallet_repo
        self._allocation_repo = allocation_repo
        self._transaction_repo = transaction_repo
        self._withdrawal_repo = withdrawal_repo
        self._payout_repo = payout_repo
        self._settings = app_settings

    async def reset_test_data(self, confirm: str) -> Dict[str, int]:
        if not self._settings.ALLOW_TEST_DATA_RESET:
            raise BusinessRuleViolation("Test data reset is disabled in this environment")
        if confirm != CONFIRMATION:
            raise BusinessRuleViolation(f"Type '{CONFIRMATION}' to confirm the reset")

        logger.warning("Test data reset started")
        counts: Dict[str, int] = {}

        # Children before parents: transactions and requests reference allocations.
        counts["transactions_deleted"] = await self._transaction_repo.delete_all()
        counts["withdrawal_requests_deleted"] = await self._withdrawal_repo.delete_all()
        counts["payout_requests_deleted"] = await self._payout_repo.delete_all()
        counts["allocations_deleted"] = await self._allocation_repo.delete_all()

        wallets = await self._wallet_repo.filter()
        for wallet in wallets:
            await self._wallet_repo.compare_and_swap(
                wallet,
                available_balance=ZERO,
                locked_balance=ZERO,
                total_deposited=ZERO,
                total_withdrawn=ZERO,
                last_transaction_date=None,
            )
        counts["wallets_reset"] = len(wallets)

        investors = await self._investor_repo.filter()
        for investor in investors:
            investor.total_invested = ZERO
            investor.current_value = ZERO
            investor.total_profit_loss = ZERO
            investor.status = InvestorStatus.INACTIVE
            await self._investor_repo.update(investor)
        counts["investors_reset"] = len(investors)

        requests = await self._request_repo.filter()
        for request in requests:
            request.status = RequestStatus.PENDING
            request.admin_notes = None
            request.rejection_reason = None
            request.reviewed_at = None
            await self._request_repo.update(request)
        counts["investor_requests_reset"] = len(requests)

        logger.warning("Test data reset finished: %s", counts)
        return counts
