"""Pydantic schemas for withdrawal requests."""

from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_serializer

from settlement.models.requests import SettlementStatus, WithdrawalType


class WithdrawalResponse(BaseModel):
    id: UUID
    investor_id: UUID
    allocation_id: UUID
    fund_plan_id: Optional[UUID] = None
    withdrawal_amount: Decimal
    withdrawal_type: WithdrawalType
    status: SettlementStatus
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    processed_date: Optional[datetime] = None
    created_at: datetime

    @field_serializer("withdrawal_amount")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)
