"""Pydantic schemas for platform settings and operational endpoints."""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class SettingUpdate(BaseModel):
    setting_key: str = Field(..., min_length=1, max_length=64, examples=["fund_payouts_enabled"])
    setting_value: str = Field(..., max_length=255, examples=["false"])
    description: Optional[str] = None


class SettingResponse(BaseModel):
    setting_key: str
    setting_value: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DispatchResponse(BaseModel):
    pending: int
    delivered: int
    failed: int


class ResetRequest(BaseModel):
    confirm: str = Field(..., description="Must be the literal string RESET", examples=["RESET"])


class ResetResponse(BaseModel):
    counts: Dict[str, int]
