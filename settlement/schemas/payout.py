"""Pydantic schemas for payout requests."""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, model_validator

from settlement.models.requests import SettlementStatus


class PayoutProcess(BaseModel):
    """
    Body of ``POST /payouts/{id}/process``.

    Exactly one of ``utr_number`` (the admin already made the bank transfer)
    or ``gateway`` (the service makes the transfer) must be given.
    """

    utr_number: Optional[str] = Field(default=None, max_length=64, examples=["HDFC0000123456"])
    gateway: Optional[Literal["razorpay", "stripe", "cashfree"]] = None

    @model_validator(mode="after")
    def validate_exactly_one_path(self) -> "PayoutProcess":
        has_utr = bool(self.utr_number and self.utr_number.strip())
        if has_utr == (self.gateway is not None):
            raise ValueError("Provide exactly one of utr_number or gateway")
        return self


class PayoutResponse(BaseModel):
    id: UUID
    investor_id: UUID
    requested_amount: Decimal
    bank_account_number: str
    bank_ifsc_code: str
    bank_name: str
    status: SettlementStatus
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    utr_number: Optional[str] = None
    payout_gateway: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    processed_date: Optional[datetime] = None
    created_at: datetime

    @field_serializer("requested_amount")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)
