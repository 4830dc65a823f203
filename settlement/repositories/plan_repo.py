"""Fund plan repository."""

from typing import List

from settlement.models.plan import FundPlan, PayoutFrequency
from settlement.repositories.base import BaseRepository


class FundPlanRepository(BaseRepository[FundPlan]):
    """Concrete repository for :class:`FundPlan` entities."""

    async def get_monthly_auto_payout_plans(self) -> List[FundPlan]:
        """Plans configured for automated monthly payout, stamped or not."""
        return await self.filter(
            auto_payout_enabled=True,
            profit_payout_frequency=PayoutFrequency.MONTHLY,
        )
