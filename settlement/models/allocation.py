"""Fund allocation model: one investor's stake in one fund plan."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


class AllocationStatus(str, Enum):
    ACTIVE = "active"
    REDEEMED = "redeemed"


class FundAllocation(SQLModel, table=True):
    """
    Invariant: ``profit_loss == current_value - total_invested``.
    ``redeemed`` is terminal and implies every financial field is zero.
    """

    __tablename__ = "fund_allocations"  # type: ignore[assignment]

    # Covers: WHERE fund_plan_id = ? AND status = 'active'  (monthly auto-payout)
    __table_args__ = (Index("ix_allocations_plan_status", "fund_plan_id", "status"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investor_id: uuid.UUID = Field(foreign_key="investors.id", index=True, ondelete="RESTRICT")
    fund_plan_id: uuid.UUID = Field(foreign_key="fund_plans.id", index=True, ondelete="RESTRICT")
    units_held: Decimal = Field(default=Decimal("0"), max_digits=24, decimal_places=8)
    average_nav: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=4)
    total_invested: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    current_value: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    profit_loss: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    profit_loss_percent: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=4)
    status: AllocationStatus = Field(default=AllocationStatus.ACTIVE, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return (
            f"<FundAllocation id={self.id} investor={self.investor_id} "
            f"invested={self.total_invested} value={self.current_value} {self.status.value}>"
        )
