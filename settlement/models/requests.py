"""
Withdrawal and payout request models.

Both move forward only: ``pending → approved → processed`` with
``rejected`` reachable from ``pending`` and ``approved``.

A *withdrawal* redeems part or all of an allocation into the wallet.  A
*payout* sends wallet cash to the investor's bank account.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel


class SettlementStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


class WithdrawalType(str, Enum):
    FULL = "full"
    PARTIAL = "partial"


class FundWithdrawalRequest(SQLModel, table=True):
    __tablename__ = "fund_withdrawal_requests"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("withdrawal_amount > 0", name="ck_withdrawals_amount_positive"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investor_id: uuid.UUID = Field(foreign_key="investors.id", index=True, ondelete="RESTRICT")
    allocation_id: uuid.UUID = Field(foreign_key="fund_allocations.id", index=True)
    fund_plan_id: Optional[uuid.UUID] = Field(default=None, foreign_key="fund_plans.id")
    withdrawal_amount: Decimal = Field(max_digits=20, decimal_places=2)
    withdrawal_type: WithdrawalType = Field(default=WithdrawalType.PARTIAL)
    status: SettlementStatus = Field(default=SettlementStatus.PENDING, index=True)
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    processed_date: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )


class FundPayoutRequest(SQLModel, table=True):
    __tablename__ = "fund_payout_requests"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("requested_amount > 0", name="ck_payouts_amount_positive"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    investor_id: uuid.UUID = Field(foreign_key="investors.id", index=True, ondelete="RESTRICT")
    requested_amount: Decimal = Field(max_digits=20, decimal_places=2)
    bank_account_number: str = Field(max_length=34)
    bank_ifsc_code: str = Field(max_length=11)
    bank_name: str = Field(max_length=128)
    # Stripe pays out to a connected account rather than a bank account.
    stripe_account_id: Optional[str] = Field(default=None, max_length=64)
    status: SettlementStatus = Field(default=SettlementStatus.PENDING, index=True)
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    utr_number: Optional[str] = Field(default=None, max_length=64)
    payout_gateway: Optional[str] = Field(default=None, max_length=16)
    reviewed_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    processed_date: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
