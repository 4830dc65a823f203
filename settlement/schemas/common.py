"""
Common / shared Pydantic schemas used across multiple endpoints.

Defines the error envelopes so that OpenAPI documentation reflects the error
payloads actually returned, plus the small review payloads (notes, rejection
reason) shared by every approval workflow.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class ErrorResponse(BaseModel):
    """Standard error envelope returned by all non-validation error handlers."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Insufficient wallet balance: available ₹1,000.00, required ₹5,000.00"],
    )


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(
        ...,
        description="Dot-separated path to the invalid field",
        examples=["body -> percentage"],
    )
    message: str = Field(
        ...,
        description="Explanation of the validation failure",
        examples=["Input should be less than or equal to 100"],
    )


class ValidationErrorResponse(BaseModel):
    """Response body for 422 Unprocessable Entity (validation failure)."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    message: str = Field(default="Validation failed", description="Summary message")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field validation failures")


class ReviewNotes(BaseModel):
    """Body of an approve action."""

    admin_notes: Optional[str] = Field(
        default=None, max_length=2000, description="Free-text note stored on the request"
    )


class RejectionInput(BaseModel):
    """Body of a reject action; the reason is mandatory."""

    reason: str = Field(..., min_length=1, max_length=2000, examples=["Incomplete bank details"])

    @field_validator("reason")
    @classmethod
    def validate_reason_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("reason must not be blank")
        return v.strip()
