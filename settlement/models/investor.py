"""
Investor and onboarding-request models.

``user_id`` is the external identity of the person behind an investor record.
It is indexed but deliberately not unique: legacy data contains several
investor rows per user, which the duplicate-merge workflow consolidates.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime
from sqlmodel import Field, SQLModel


class KycStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


class InvestorStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class RiskProfile(str, Enum):
    CONSERVATIVE = "conservative"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"


class InvestmentExperience(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


class RequestStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Investor(SQLModel, table=True):
    """
    An onboarded investor.

    ``total_invested``, ``current_value`` and ``total_profit_loss`` are a
    denormalised summary of the investor's active allocations; they are
    recomputed after redemptions and merges and are never the source of truth.
    """

    __tablename__ = "investors"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(user_id) > 0", name="ck_investors_user_id_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=64)
    investor_code: str = Field(unique=True, index=True, max_length=32)
    full_name: str = Field(max_length=255)
    email: str = Field(index=True, max_length=320)
    mobile_number: Optional[str] = Field(default=None, max_length=32)
    bank_account_number: Optional[str] = Field(default=None, max_length=34)
    bank_ifsc_code: Optional[str] = Field(default=None, max_length=11)
    bank_name: Optional[str] = Field(default=None, max_length=128)
    risk_profile: RiskProfile = Field(default=RiskProfile.CONSERVATIVE)
    kyc_status: KycStatus = Field(default=KycStatus.PENDING)
    status: InvestorStatus = Field(default=InvestorStatus.ACTIVE)
    total_invested: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    current_value: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    total_profit_loss: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Investor id={self.id} code={self.investor_code} user={self.user_id}>"


class InvestorRequest(SQLModel, table=True):
    """A person's request to be onboarded as an investor."""

    __tablename__ = "investor_requests"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=64)
    full_name: str = Field(max_length=255)
    email: str = Field(max_length=320)
    mobile_number: Optional[str] = Field(default=None, max_length=32)
    bank_account_number: Optional[str] = Field(default=None, max_length=34)
    bank_ifsc_code: Optional[str] = Field(default=None, max_length=11)
    bank_name: Optional[str] = Field(default=None, max_length=128)
    investment_experience: InvestmentExperience = Field(default=InvestmentExperience.BEGINNER)
    status: RequestStatus = Field(default=RequestStatus.PENDING, index=True)
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    created_at: datetime = Field(
        default_factory=_utcnow,
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
