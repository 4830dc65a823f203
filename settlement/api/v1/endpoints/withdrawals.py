"""
Withdrawal request endpoints.

- GET   /withdrawals                 — List requests, optionally by status
- POST  /withdrawals/{id}/approve    — pending → approved (funds put on hold)
- POST  /withdrawals/{id}/reject     — pending|approved → rejected
- POST  /withdrawals/{id}/process    — approved → processed (redemption)
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.api.v1.deps import build_notifier, get_platform_config
from settlement.db.session import get_db
from settlement.models.allocation import FundAllocation
from settlement.models.investor import Investor
from settlement.models.requests import FundWithdrawalRequest, SettlementStatus
from settlement.models.transaction import FundTransaction
from settlement.models.wallet import FundWallet
from settlement.repositories.allocation_repo import AllocationRepository
from settlement.repositories.investor_repo import InvestorRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.repositories.withdrawal_repo import WithdrawalRequestRepository
from settlement.schemas.common import ErrorResponse, RejectionInput, ReviewNotes
from settlement.schemas.withdrawal import WithdrawalResponse
from settlement.services.platform_config import PlatformConfig
from settlement.services.withdrawal_service import WithdrawalService

router = APIRouter()


# ── Dependency injection ──


def _get_withdrawal_service(db: AsyncSession = Depends(get_db)) -> WithdrawalService:
    """Build a WithdrawalService wired to the current request's DB session."""
    return WithdrawalService(
        withdrawal_repo=WithdrawalRequestRepository(FundWithdrawalRequest, db),
        wallet_repo=WalletRepository(FundWallet, db),
        allocation_repo=AllocationRepository(FundAllocation, db),
        investor_repo=InvestorRepository(Investor, db),
        transaction_repo=TransactionRepository(FundTransaction, db),
        notifier=build_notifier(db),
    )


_ERRORS = {
    404: {"model": ErrorResponse, "description": "Request, wallet or allocation not found"},
    409: {"model": ErrorResponse, "description": "Wallet modified concurrently"},
    422: {"model": ErrorResponse, "description": "Invalid transition or business rule violation"},
}


# ── Endpoints ──


@router.get(
    "",
    response_model=List[WithdrawalResponse],
    summary="List withdrawal requests",
)
async def list_withdrawals(
    status: Optional[SettlementStatus] = Query(None, description="Filter by status"),
    service: WithdrawalService = Depends(_get_withdrawal_service),
) -> List[WithdrawalResponse]:
    return await service.list_requests(status)


@router.post(
    "/{request_id}/approve",
    response_model=WithdrawalResponse,
    summary="Approve a withdrawal request",
    description="Locks the withdrawal amount on the investor's wallet.",
    responses=_ERRORS,
)
async def approve_withdrawal(
    request_id: UUID,
    body: ReviewNotes,
    config: PlatformConfig = Depends(get_platform_config),
    service: WithdrawalService = Depends(_get_withdrawal_service),
) -> WithdrawalResponse:
    return await service.approve(request_id, body.admin_notes, config)


@router.post(
    "/{request_id}/reject",
    response_model=WithdrawalResponse,
    summary="Reject a withdrawal request",
    description="Releases the wallet hold if the request had been approved.",
    responses=_ERRORS,
)
async def reject_withdrawal(
    request_id: UUID,
    body: RejectionInput,
    service: WithdrawalService = Depends(_get_withdrawal_service),
) -> WithdrawalResponse:
    return await service.reject(request_id, body.reason)


@router.post(
    "/{request_id}/process",
    response_model=WithdrawalResponse,
    summary="Process an approved withdrawal",
    description=(
        "Redeems the amount from the allocation, drops the wallet hold and "
        "credits the proceeds to the wallet."
    ),
    responses=_ERRORS,
)
async def process_withdrawal(
    request_id: UUID,
    config: PlatformConfig = Depends(get_platform_config),
    service: WithdrawalService = Depends(_get_withdrawal_service),
) -> WithdrawalResponse:
    return await service.process(request_id, config)
