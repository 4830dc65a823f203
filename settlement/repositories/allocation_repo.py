"""Fund allocation repository."""

from typing import List
from uuid import UUID

from settlement.models.allocation import AllocationStatus, FundAllocation
from settlement.repositories.base import BaseRepository


class AllocationRepository(BaseRepository[FundAllocation]):
    """Concrete repository for :class:`FundAllocation` entities."""

    async def get_active(self) -> List[FundAllocation]:
        return await self.filter(status=AllocationStatus.ACTIVE)

    async def get_active_by_plan(self, plan_id: UUID) -> List[FundAllocation]:
        # Served by the composite index ix_allocations_plan_status.
        return await self.filter(fund_plan_id=plan_id, status=AllocationStatus.ACTIVE)

    async def get_by_investor(self, investor_id: UUID) -> List[FundAllocation]:
        return await self.filter(investor_id=investor_id)
