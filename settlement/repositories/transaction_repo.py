"""
Fund transaction repository.

Besides the generic CRUD it answers "how much profit has already been paid
on these allocations", the input to the distributable-profit calculation.
"""

from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.future import select

from settlement.models.transaction import (
    FundTransaction,
    TransactionStatus,
    TransactionType,
)
from settlement.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[FundTransaction]):
    """Concrete repository for :class:`FundTransaction` entities."""

    async def profit_paid_by_allocation(
        self, allocation_ids: Optional[List[UUID]] = None
    ) -> Dict[UUID, Decimal]:
        """
        Sum of completed ``profit_payout`` amounts keyed by allocation id.

        Allocations that never received a payout are absent from the result.
        Pass ``allocation_ids`` to restrict the aggregation.
        """

        async def _sum() -> Dict[UUID, Decimal]:
            stmt = (
                select(FundTransaction.allocation_id, func.sum(FundTransaction.amount))
                .where(
                    FundTransaction.transaction_type == TransactionType.PROFIT_PAYOUT,
                    FundTransaction.status == TransactionStatus.COMPLETED,
                    FundTransaction.allocation_id.is_not(None),  # type: ignore[union-attr]
                )
                .group_by(FundTransaction.allocation_id)
            )
            if allocation_ids is not None:
                stmt = stmt.where(
                    FundTransaction.allocation_id.in_(allocation_ids)  # type: ignore[union-attr]
                )
            result = await self.db.execute(stmt)
            return {
                allocation_id: Decimal(str(total))
                for allocation_id, total in result.all()
                if total is not None
            }

        return await self._guarded(_sum)

    async def has_reference(self, allocation_id: UUID, payment_reference: str) -> bool:
        rows = await self.filter(
            allocation_id=allocation_id, payment_reference=payment_reference
        )
        return bool(rows)
