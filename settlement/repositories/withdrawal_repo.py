"""Withdrawal request repository."""

from typing import List, Optional

from settlement.models.requests import FundWithdrawalRequest, SettlementStatus
from settlement.repositories.base import BaseRepository


class WithdrawalRequestRepository(BaseRepository[FundWithdrawalRequest]):
    """Concrete repository for :class:`FundWithdrawalRequest` entities."""

    async def list_by_status(
        self, status: Optional[SettlementStatus] = None
    ) -> List[FundWithdrawalRequest]:
        if status is None:
            return await self.filter()
        return await self.filter(status=status)
