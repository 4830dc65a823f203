"""
Fund wallet model.

One wallet per investor.  ``version`` is bumped by every balance write; the
wallet repository only applies a write when the version it read is still
current, so two admins acting on the same wallet cannot silently overwrite
each other.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel


class FundWallet(SQLModel, table=True):
    __tablename__ = "fund_wallets"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("available_balance >= 0", name="ck_wallets_available_non_negative"),
        CheckConstraint("locked_balance >= 0", name="ck_wallets_locked_non_negative"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investor_id: uuid.UUID = Field(
        foreign_key="investors.id",
        unique=True,
        index=True,
        ondelete="RESTRICT",
    )
    available_balance: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    locked_balance: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    total_deposited: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    total_withdrawn: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    version: int = Field(default=1, nullable=False)
    last_transaction_date: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return (
            f"<FundWallet id={self.id} investor={self.investor_id} "
            f"available={self.available_balance} locked={self.locked_balance} v{self.version}>"
        )
