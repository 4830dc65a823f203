"""Pydantic schemas for investors, onboarding requests and duplicate merges."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_serializer

from settlement.models.investor import (
    InvestmentExperience,
    InvestorStatus,
    KycStatus,
    RequestStatus,
    RiskProfile,
)


class InvestorResponse(BaseModel):
    id: UUID
    user_id: str
    investor_code: str
    full_name: str
    email: str
    risk_profile: RiskProfile
    kyc_status: KycStatus
    status: InvestorStatus
    total_invested: Decimal
    current_value: Decimal
    total_profit_loss: Decimal
    created_at: datetime

    @field_serializer("total_invested", "current_value", "total_profit_loss")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class WalletResponse(BaseModel):
    id: UUID
    investor_id: UUID
    available_balance: Decimal
    locked_balance: Decimal
    total_deposited: Decimal
    total_withdrawn: Decimal
    version: int

    @field_serializer("available_balance", "locked_balance", "total_deposited", "total_withdrawn")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class KycUpdate(BaseModel):
    kyc_status: KycStatus


class DuplicateGroupResponse(BaseModel):
    user_id: str
    primary_investor_id: UUID
    investors: List[InvestorResponse]


class MergeResponse(BaseModel):
    user_id: str
    primary_investor_id: UUID
    merged_investor_ids: List[UUID]
    allocations_moved: int
    transactions_moved: int
    requests_moved: int
    notifications_moved: int = 0
    primary_investor: InvestorResponse
    primary_wallet: Optional[WalletResponse] = None

    model_config = ConfigDict(from_attributes=True)


class InvestorRequestResponse(BaseModel):
    id: UUID
    user_id: str
    full_name: str
    email: str
    investment_experience: InvestmentExperience
    status: RequestStatus
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ApprovalResponse(BaseModel):
    request: InvestorRequestResponse
    investor: Optional[InvestorResponse] = None
    duplicate: bool = False

    model_config = ConfigDict(from_attributes=True)
