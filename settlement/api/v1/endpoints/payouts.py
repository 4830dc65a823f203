"""
Payout request endpoints (wallet cash-out to a bank account).

- GET   /payouts                 — List requests, optionally by status
- POST  /payouts/{id}/approve    — pending → approved
- POST  /payouts/{id}/reject     — pending|approved → rejected
- POST  /payouts/{id}/process    — approved → processed via UTR or gateway
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.api.v1.deps import build_notifier, get_platform_config
from settlement.db.session import get_db
from settlement.models.investor import Investor
from settlement.models.requests import FundPayoutRequest, SettlementStatus
from settlement.models.transaction import FundTransaction
from settlement.models.wallet import FundWallet
from settlement.repositories.investor_repo import InvestorRepository
from settlement.repositories.payout_repo import PayoutRequestRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.schemas.common import ErrorResponse, RejectionInput, ReviewNotes
from settlement.schemas.payout import PayoutProcess, PayoutResponse
from settlement.services.payout_service import PayoutService
from settlement.services.platform_config import PlatformConfig

router = APIRouter()


def _get_payout_service(db: AsyncSession = Depends(get_db)) -> PayoutService:
    return PayoutService(
        payout_repo=PayoutRequestRepository(FundPayoutRequest, db),
        wallet_repo=WalletRepository(FundWallet, db),
        investor_repo=InvestorRepository(Investor, db),
        transaction_repo=TransactionRepository(FundTransaction, db),
        notifier=build_notifier(db),
    )


@router.get("", response_model=List[PayoutResponse], summary="List payout requests")
async def list_payouts(
    status: Optional[SettlementStatus] = Query(None, description="Filter by status"),
    service: PayoutService = Depends(_get_payout_service),
) -> List[PayoutResponse]:
    return await service.list_requests(status)


@router.post(
    "/{request_id}/approve",
    response_model=PayoutResponse,
    summary="Approve a payout request",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def approve_payout(
    request_id: UUID,
    body: ReviewNotes,
    service: PayoutService = Depends(_get_payout_service),
) -> PayoutResponse:
    return await service.approve(request_id, body.admin_notes)


@router.post(
    "/{request_id}/reject",
    response_model=PayoutResponse,
    summary="Reject a payout request",
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def reject_payout(
    request_id: UUID,
    body: RejectionInput,
    service: PayoutService = Depends(_get_payout_service),
) -> PayoutResponse:
    return await service.reject(request_id, body.reason)


@router.post(
    "/{request_id}/process",
    response_model=PayoutResponse,
    summary="Process an approved payout",
    description=(
        "Either records a manual bank transfer by its UTR, or performs the "
        "transfer through a payment gateway.  The wallet is debited only once "
        "the transfer is confirmed."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Request or wallet not found"},
        409: {"model": ErrorResponse, "description": "Wallet modified concurrently"},
        412: {"model": ErrorResponse, "description": "Gateway not configured"},
        422: {"model": ErrorResponse, "description": "Insufficient balance or invalid transition"},
        502: {"model": ErrorResponse, "description": "Gateway rejected the transfer"},
    },
)
async def process_payout(
    request_id: UUID,
    body: PayoutProcess,
    config: PlatformConfig = Depends(get_platform_config),
    service: PayoutService = Depends(_get_payout_service),
) -> PayoutResponse:
    return await service.process(
        request_id, config, utr_number=body.utr_number, gateway=body.gateway
    )
