"""
Investor onboarding request endpoints.

- POST  /investor-requests/{id}/approve  — Create the investor (or auto-reject a duplicate)
- POST  /investor-requests/{id}/reject   — Reject with a reason
"""

from uuid import UUID

from fastapi import APIRouter, Depends

from settlement.api.v1.deps import get_onboarding_service
from settlement.schemas.common import ErrorResponse, RejectionInput, ReviewNotes
from settlement.schemas.investor import ApprovalResponse, InvestorRequestResponse
from settlement.services.onboarding_service import OnboardingService

router = APIRouter()


@router.post(
    "/{request_id}/approve",
    response_model=ApprovalResponse,
    summary="Approve an onboarding request",
    description=(
        "Creates the investor and an empty wallet.  If the user already has an "
        "investor record the request is rejected instead and ``duplicate`` is true."
    ),
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def approve_investor_request(
    request_id: UUID,
    body: ReviewNotes,
    service: OnboardingService = Depends(get_onboarding_service),
) -> ApprovalResponse:
    outcome = await service.approve_request(request_id, body.admin_notes)
    return ApprovalResponse.model_validate(outcome)


@router.post(
    "/{request_id}/reject",
    response_model=InvestorRequestResponse,
    summary="Reject an onboarding request",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def reject_investor_request(
    request_id: UUID,
    body: RejectionInput,
    service: OnboardingService = Depends(get_onboarding_service),
) -> InvestorRequestResponse:
    return await service.reject_request(request_id, body.reason)
