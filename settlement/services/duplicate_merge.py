"""
Duplicate investor detection and consolidation.

Legacy data holds several investor records for one ``user_id``.  A merge
keeps the earliest-created record as primary and folds every other record of
the group into it:

1. allocations, transactions, withdrawal and payout requests and outbox
   notifications are re-pointed at the primary investor;
2. the duplicate's wallet balances are added into the primary wallet (one is
   created if the primary has none) and the duplicate wallet is deleted;
3. the duplicate investor is deleted.

Only after every duplicate has been folded in are the primary's totals
recomputed from its active allocations.  Stored totals are never carried
over.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from settlement.core.exceptions import BusinessRuleViolation
from settlement.core.money import to_decimal
from settlement.models.investor import Investor
from settlement.models.wallet import FundWallet
from settlement.repositories.allocation_repo import AllocationRepository
from settlement.repositories.investor_repo import InvestorRepository
from settlement.repositories.notification_repo import NotificationRepository
from settlement.repositories.payout_repo import PayoutRequestRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.repositories.withdrawal_repo import WithdrawalRequestRepository
from settlement.services.allocation_recompute import refresh_investor_totals

logger = logging.getLogger(__name__)

WALLET_FIELDS = ("available_balance", "locked_balance", "total_deposited", "total_withdrawn")


def _created_key(investor: Investor):
    created = investor.created_at
    if created.tzinfo is None:
        created = created.replace(tzinfo=timezone.utc)
    return (created, str(investor.id))


@dataclass
class DuplicateGroup:
    user_id: str
    investors: List[Investor]

    @property
    def primary(self) -> Investor:
        return self.investors[0]

    @property
    def duplicates(self) -> List[Investor]:
        return self.investors[1:]


@dataclass
class MergeResult:
    user_id: str
    primary_investor_id: UUID
    merged_investor_ids: List[UUID] = field(default_factory=list)
    allocations_moved: int = 0
    transactions_moved: int = 0
    requests_moved: int = 0
    notifications_moved: int = 0
    primary_wallet: Optional[FundWallet] = None
    primary_investor: Optional[Investor] = None


class DuplicateMergeService:
    def __init__(
        self,
        investor_repo: InvestorRepository,
        wallet_repo: WalletRepository,
        allocation_repo: AllocationRepository,
        transaction_repo: TransactionRepository,
        withdrawal_repo: WithdrawalRequestRepository,
        payout_repo: PayoutRequestRepository,
        notification_repo: NotificationRepository,
    ):
        self._investor_repo = investor_repo
        self._wallet_repo = wallet_repo
        self._allocation_repo = allocation_repo
        self._transaction_repo = transaction_repo
        self._withdrawal_repo = withdrawal_repo
        self._payout_repo = payout_repo
        self._notification_repo = notification_repo

    async def find_duplicate_groups(self) -> List[DuplicateGroup]:
        """Investors grouped by ``user_id``, groups of two or more only."""
        grouped: Dict[str, List[Investor]] = {}
        for investor in await self._investor_repo.filter():
            grouped.setdefault(investor.user_id, []).append(investor)
        return [
            DuplicateGroup(user_id, sorted(members, key=_created_key))
            for user_id, members in grouped.items()
            if len(members) > 1
        ]

    async def merge_group(self, user_id: str) -> MergeResult:
        investors = sorted(await self._investor_repo.get_by_user(user_id), key=_created_key)
        if len(investors) < 2:
            raise BusinessRuleViolation(f"No duplicate investor records for user '{user_id}'")

        primary, duplicates = investors[0], investors[1:]
        result = MergeResult(user_id=user_id, primary_investor_id=primary.id)
        logger.info(
            "Merging %d duplicate investor(s) of user %s into %s",
            len(duplicates),
            user_id,
            primary.investor_code,
            extra={"investor_id": str(primary.id)},
        )

        for duplicate in duplicates:
            await self._reassign_rows(duplicate.id, primary.id, result)
            await self._merge_wallet(duplicate.id, primary.id)
            await self._investor_repo.delete(duplicate.id)
            result.merged_investor_ids.append(duplicate.id)
            logger.info(
                "Duplicate investor %s (%s) folded into %s",
                duplicate.id,
                duplicate.investor_code,
                primary.id,
                extra={"investor_id": str(primary.id)},
            )

        result.primary_investor = await refresh_investor_totals(
            primary.id, self._investor_repo, self._allocation_repo
        )
        result.primary_wallet = await self._wallet_repo.get_by_investor(primary.id)
        return result

    async def _reassign_rows(self, from_id: UUID, to_id: UUID, result: MergeResult) -> None:
        for allocation in await self._allocation_repo.get_by_investor(from_id):
            allocation.investor_id = to_id
            await self._allocation_repo.update(allocation)
            result.allocations_moved += 1

        for transaction in await self._transaction_repo.filter(investor_id=from_id):
            transaction.investor_id = to_id
            await self._transaction_repo.update(transaction)
            result.transactions_moved += 1

        for repo in (self._withdrawal_repo, self._payout_repo):
            for request in await repo.filter(investor_id=from_id):
                request.investor_id = to_id
                await repo.update(request)
                result.requests_moved += 1

        for notification in await self._notification_repo.filter(investor_id=from_id):
            notification.investor_id = to_id
            await self._notification_repo.update(notification)
            result.notifications_moved += 1

    async def _merge_wallet(self, from_id: UUID, to_id: UUID) -> None:
        source = await self._wallet_repo.get_by_investor(from_id)
        if source is None:
            return

        target = await self._wallet_repo.get_by_investor(to_id)
        if target is None:
            target = await self._wallet_repo.create(FundWallet(investor_id=to_id))
            logger.info("Created wallet %s for primary investor %s", target.id, to_id)

        target = await self._wallet_repo.get_fresh(target.id)
        merged = {
            name: to_decimal(getattr(target, name)) + to_decimal(getattr(source, name))
            for name in WALLET_FIELDS
        }
        merged["last_transaction_date"] = datetime.now(timezone.utc)
        await self._wallet_repo.compare_and_swap(target, **merged)
        await self._wallet_repo.delete(source.id)
        logger.info(
            "Wallet %s merged into %s (available +%s, locked +%s)",
            source.id,
            target.id,
            source.available_balance,
            source.locked_balance,
            extra={"wallet_id": str(target.id)},
        )
