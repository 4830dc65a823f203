"""
Maintenance endpoint.

- POST  /maintenance/reset-test-data  — Wipe activity data (staging only)
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.session import get_db
from settlement.models.allocation import FundAllocation
from settlement.models.investor import Investor, InvestorRequest
from settlement.models.requests import FundPayoutRequest, FundWithdrawalRequest
from settlement.models.transaction import FundTransaction
from settlement.models.wallet import FundWallet
from settlement.repositories.allocation_repo import AllocationRepository
from settlement.repositories.investor_repo import InvestorRepository, InvestorRequestRepository
from settlement.repositories.payout_repo import PayoutRequestRepository
from settlement.repositories.transaction_repo import TransactionRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.repositories.withdrawal_repo import WithdrawalRequestRepository
from settlement.schemas.common import ErrorResponse
from settlement.schemas.settings import ResetRequest, ResetResponse
from settlement.services.maintenance_service import MaintenanceService

router = APIRouter()


def _get_maintenance_service(db: AsyncSession = Depends(get_db)) -> MaintenanceService:
    return MaintenanceService(
        investor_repo=InvestorRepository(Investor, db),
        request_repo=InvestorRequestRepository(InvestorRequest, db),
        wallet_repo=WalletRepository(FundWallet, db),
        allocation_repo=AllocationRepository(FundAllocation, db),
        transaction_repo=TransactionRepository(FundTransaction, db),
        withdrawal_repo=WithdrawalRequestRepository(FundWithdrawalRequest, db),
        payout_repo=PayoutRequestRepository(FundPayoutRequest, db),
    )


@router.post(
    "/reset-test-data",
    response_model=ResetResponse,
    summary="Reset test data",
    description="Only available when ALLOW_TEST_DATA_RESET is enabled; requires confirm=RESET.",
    responses={422: {"model": ErrorResponse, "description": "Disabled or not confirmed"}},
)
async def reset_test_data(
    body: ResetRequest,
    service: MaintenanceService = Depends(_get_maintenance_service),
) -> ResetResponse:
    return ResetResponse(counts=await service.reset_test_data(body.confirm))
