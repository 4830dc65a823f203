"""Fund plan model."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel


class PayoutFrequency(str, Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    ANNUALLY = "annually"


class FundPlan(SQLModel, table=True):
    """
    A fund plan investors allocate capital into.

    ``last_auto_payout_month`` (``YYYY-MM``) records the last month the
    automated profit payout ran for this plan; a plan stamped with the current
    month is skipped by later runs in the same month.
    """

    __tablename__ = "fund_plans"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("expected_return_percent >= 0", name="ck_plans_return_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    plan_code: str = Field(unique=True, index=True, max_length=32)
    plan_name: str = Field(max_length=255)
    expected_return_percent: Decimal = Field(
        default=Decimal("0"), max_digits=7, decimal_places=4
    )
    profit_payout_frequency: PayoutFrequency = Field(default=PayoutFrequency.MONTHLY)
    auto_payout_enabled: bool = Field(default=False)
    last_auto_payout_month: Optional[str] = Field(default=None, max_length=7)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return f"<FundPlan id={self.id} code={self.plan_code} return={self.expected_return_percent}%>"
