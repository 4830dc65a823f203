"""
Allocation recompute after a redemption, and investor aggregate refresh.

:func:`recompute_after_redemption` is pure: it returns the new financial
fields of an allocation and leaves persisting them to the caller.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict
from uuid import UUID

from settlement.core.exceptions import NotFoundException
from settlement.core.money import (
    HUNDRED,
    ZERO,
    floor_zero,
    q_money,
    q_units,
    to_decimal,
)
from settlement.models.allocation import AllocationStatus, FundAllocation
from settlement.models.investor import Investor
from settlement.repositories.allocation_repo import AllocationRepository
from settlement.repositories.investor_repo import InvestorRepository

logger = logging.getLogger(__name__)

PERCENT_Q = Decimal("0.0001")


@dataclass(frozen=True)
class AllocationFigures:
    units_held: Decimal
    total_invested: Decimal
    current_value: Decimal
    profit_loss: Decimal
    profit_loss_percent: Decimal
    status: AllocationStatus

    def as_changes(self) -> Dict[str, Any]:
        return {
            "units_held": self.units_held,
            "total_invested": self.total_invested,
            "current_value": self.current_value,
            "profit_loss": self.profit_loss,
            "profit_loss_percent": self.profit_loss_percent,
            "status": self.status,
        }


REDEEMED = AllocationFigures(
    units_held=ZERO,
    total_invested=ZERO,
    current_value=ZERO,
    profit_loss=ZERO,
    profit_loss_percent=ZERO,
    status=AllocationStatus.REDEEMED,
)


def is_full_redemption(allocation: FundAllocation, amount: Any, full: bool) -> bool:
    """A full-type request, or one that takes at least everything invested."""
    return full or to_decimal(amount) >= to_decimal(allocation.total_invested)


def recompute_after_redemption(
    allocation: FundAllocation, amount: Any, full: bool = False
) -> AllocationFigures:
    """
    Figures for ``allocation`` after ``amount`` has been redeemed from it.

    Partial redemptions take ``amount`` off both invested capital and current
    value (each floored at zero) and re-derive units from ``average_nav``.
    A missing ``average_nav`` is treated as 1, so units then equal the
    remaining invested amount.
    """
    if is_full_redemption(allocation, amount, full):
        return REDEEMED

    redeemed = to_decimal(amount)
    remaining_invested = q_money(floor_zero(to_decimal(allocation.total_invested) - redeemed))
    remaining_value = q_money(floor_zero(to_decimal(allocation.current_value) - redeemed))

    nav = to_decimal(allocation.average_nav) if allocation.average_nav else Decimal("1")
    units = q_units(remaining_invested / nav)

    profit_loss = remaining_value - remaining_invested
    if remaining_invested > ZERO:
        profit_loss_percent = (profit_loss / remaining_invested * HUNDRED).quantize(PERCENT_Q)
    else:
        profit_loss_percent = ZERO

    return AllocationFigures(
        units_held=units,
        total_invested=remaining_invested,
        current_value=remaining_value,
        profit_loss=profit_loss,
        profit_loss_percent=profit_loss_percent,
        status=AllocationStatus.ACTIVE if remaining_invested > ZERO else AllocationStatus.REDEEMED,
    )


async def refresh_investor_totals(
    investor_id: UUID,
    investor_repo: InvestorRepository,
    allocation_repo: AllocationRepository,
) -> Investor:
    """
    Recompute an investor's aggregate totals from its active allocations.

    The stored totals are a summary only; this is the authoritative correction
    and overwrites whatever was there.
    """
    investor = await investor_repo.get_fresh(investor_id)
    if investor is None:
        raise NotFoundException("Investor", investor_id)

    allocations = await allocation_repo.get_by_investor(investor_id)
    active = [a for a in allocations if a.status == AllocationStatus.ACTIVE]
    invested = sum((to_decimal(a.total_invested) for a in active), ZERO)
    value = sum((to_decimal(a.current_value) for a in active), ZERO)

    investor.total_invested = q_money(invested)
    investor.current_value = q_money(value)
    investor.total_profit_loss = q_money(value - invested)
    updated = await investor_repo.update(investor)
    logger.info(
        "Investor %s totals refreshed: invested=%s value=%s (%d active allocations)",
        investor_id,
        updated.total_invested,
        updated.current_value,
        len(active),
        extra={"investor_id": str(investor_id)},
    )
    return updated
