"""
Investor endpoints.

- GET   /investors/duplicates                   — Investor records sharing a user_id
- POST  /investors/duplicates/{user_id}/merge   — Consolidate one duplicate group
- PUT   /investors/{id}/kyc                     — Update KYC status
"""

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.api.v1.deps import get_onboarding_service
from settlement.db.session import get_db
from settlement.models.allocation import FundAllocation
from settlement.models.investor import Investor
from settlement.models.notification import Notification
from settlement.models.requests import FundPayoutRequest, FundWithdrawalRequest
from settlement.models.transaction import FundTransaction
from settlement.models.wallet import FundWallet
from settlement.repositories.allocation_repo import AllocationRepository
from settlement.repositories.investor_repo import InvestorRepository
from settlement.repositories.notification_repo import NotificationRepository
from settlement.repositories.payout_repo import PayoutRequestRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.repositories.withdrawal_repo import WithdrawalRequestRepository
from settlement.schemas.common import ErrorResponse
from settlement.schemas.investor import (
    DuplicateGroupResponse,
    InvestorResponse,
    KycUpdate,
    MergeResponse,
)
from settlement.services.duplicate_merge import DuplicateMergeService
from settlement.services.onboarding_service import OnboardingService

router = APIRouter()


def _get_merge_service(db: AsyncSession = Depends(get_db)) -> DuplicateMergeService:
    return DuplicateMergeService(
        investor_repo=InvestorRepository(Investor, db),
        wallet_repo=WalletRepository(FundWallet, db),
        allocation_repo=AllocationRepository(FundAllocation, db),
        transaction_repo=TransactionRepository(FundTransaction, db),
        withdrawal_repo=WithdrawalRequestRepository(FundWithdrawalRequest, db),
        payout_repo=PayoutRequestRepository(FundPayoutRequest, db),
        notification_repo=NotificationRepository(Notification, db),
    )


@router.get(
    "/duplicates",
    response_model=List[DuplicateGroupResponse],
    summary="List duplicate investor groups",
    description="Groups of two or more investor records that share a user_id; the first is the merge primary.",
)
async def list_duplicates(
    service: DuplicateMergeService = Depends(_get_merge_service),
) -> List[DuplicateGroupResponse]:
    groups = await service.find_duplicate_groups()
    return [
        DuplicateGroupResponse(
            user_id=group.user_id,
            primary_investor_id=group.primary.id,
            investors=[InvestorResponse.model_validate(i) for i in group.investors],
        )
        for group in groups
    ]


@router.post(
    "/duplicates/{user_id}/merge",
    response_model=MergeResponse,
    summary="Merge a duplicate investor group",
    responses={
        409: {"model": ErrorResponse, "description": "Wallet modified concurrently"},
        422: {"model": ErrorResponse, "description": "No duplicates for this user"},
    },
)
async def merge_duplicates(
    user_id: str,
    service: DuplicateMergeService = Depends(_get_merge_service),
) -> MergeResponse:
    result = await service.merge_group(user_id)
    return MergeResponse.model_validate(result)


@router.put(
    "/{investor_id}/kyc",
    response_model=InvestorResponse,
    summary="Update an investor's KYC status",
    responses={404: {"model": ErrorResponse, "description": "Investor not found"}},
)
async def update_kyc(
    investor_id: UUID,
    body: KycUpdate,
    service: OnboardingService = Depends(get_onboarding_service),
) -> InvestorResponse:
    return await service.update_kyc_status(investor_id, body.kyc_status)
