"""Payout request repository."""

from typing import List, Optional

from settlement.models.requests import FundPayoutRequest, SettlementStatus
from settlement.repositories.base import BaseRepository


class PayoutRequestRepository(BaseRepository[FundPayoutRequest]):
    """Concrete repository for :class:`FundPayoutRequest` entities."""

    async def list_by_status(
        self, status: Optional[SettlementStatus] = None
    ) -> List[FundPayoutRequest]:
        if status is None:
            return await self.filter()
        return await self.filter(status=status)
