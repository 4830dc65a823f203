"""
Investor repositories — investors and their onboarding requests.

``get_by_user`` backs both duplicate detection (several investors per user)
and the duplicate-prevention check when an onboarding request is approved.
"""

from typing import List

from settlement.models.investor import Investor, InvestorRequest
from settlement.repositories.base import BaseRepository


class InvestorRepository(BaseRepository[Investor]):
    """Concrete repository for :class:`Investor` entities."""

    async def get_by_user(self, user_id: str) -> List[Investor]:
        return await self.filter(user_id=user_id)


class InvestorRequestRepository(BaseRepository[InvestorRequest]):
    """Concrete repository for :class:`InvestorRequest` entities."""

    pass
