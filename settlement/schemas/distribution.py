"""
Pydantic schemas for the profit distribution endpoints.

Amounts are serialised as JSON numbers, matching every other response.
"""

from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class ManualDistributionRequest(BaseModel):
    percentage: Decimal = Field(
        ...,
        ge=1,
        le=100,
        description="Share of each allocation's distributable profit to pay out",
        examples=[10],
    )
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


class EligibleAllocationResponse(BaseModel):
    allocation_id: UUID
    investor_id: UUID
    fund_plan_id: UUID
    total_invested: Decimal
    current_value: Decimal
    already_paid: Decimal
    distributable: Decimal

    @field_serializer("total_invested", "current_value", "already_paid", "distributable")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class DistributionPreviewResponse(BaseModel):
    allocations: List[EligibleAllocationResponse]
    count: int
    total_distributable: Decimal

    @field_serializer("total_distributable")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)


class PayoutOutcomeResponse(BaseModel):
    allocation_id: UUID
    investor_id: UUID
    amount: Decimal
    succeeded: bool
    error: Optional[str] = None

    @field_serializer("amount")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)


class DistributionReportResponse(BaseModel):
    percentage: Decimal
    succeeded_count: int
    failed_count: int
    total_paid: Decimal
    outcomes: List[PayoutOutcomeResponse]

    @field_serializer("percentage", "total_paid")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)


class AutoPayoutResponse(BaseModel):
    month: str
    plans_paid: List[str]
    plans_already_processed: List[str]
    plans_incomplete: List[str]
    payouts_created: int
    skipped_no_wallet: int
    total_paid: Decimal
    failures: List[PayoutOutcomeResponse]

    @field_serializer("total_paid")
    def serialize_decimal_as_number(self, v: Decimal) -> float:
        return float(v)

    model_config = ConfigDict(from_attributes=True)
