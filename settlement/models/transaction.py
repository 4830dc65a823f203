"""
Fund transaction model: the append-only audit trail of ledger events.

Rows are only ever created.  The single exception is investor consolidation,
which re-points ``investor_id`` at the surviving investor record.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, SQLModel


class TransactionType(str, Enum):
    INVESTMENT = "investment"
    PROFIT_PAYOUT = "profit_payout"
    REDEMPTION = "redemption"
    WALLET_WITHDRAWAL = "wallet_withdrawal"
    WITHDRAWAL_HOLD = "withdrawal_hold"
    WITHDRAWAL_RELEASE = "withdrawal_release"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class FundTransaction(SQLModel, table=True):
    __tablename__ = "fund_transactions"  # type: ignore[assignment]

    # Covers the distributable-profit lookup: profit payouts per allocation.
    __table_args__ = (
        Index("ix_transactions_allocation_type", "allocation_id", "transaction_type"),
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investor_id: uuid.UUID = Field(foreign_key="investors.id", index=True, ondelete="RESTRICT")
    fund_plan_id: Optional[uuid.UUID] = Field(default=None, foreign_key="fund_plans.id")
    allocation_id: Optional[uuid.UUID] = Field(default=None, foreign_key="fund_allocations.id")
    transaction_type: TransactionType
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    status: TransactionStatus = Field(default=TransactionStatus.COMPLETED)
    payment_method: Optional[str] = Field(default=None, max_length=32)
    payment_reference: Optional[str] = Field(default=None, index=True, max_length=128)
    notes: Optional[str] = None
    transaction_date: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return (
            f"<FundTransaction id={self.id} {self.transaction_type.value} "
            f"amount={self.amount} investor={self.investor_id}>"
        )
