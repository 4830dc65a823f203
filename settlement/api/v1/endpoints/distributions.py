"""
Profit distribution endpoints.

- GET   /profit-distribution/preview       — Eligible allocations and amounts
- POST  /profit-distribution/manual        — Pay a percentage of distributable profit
- POST  /profit-distribution/auto-monthly  — Run the automated monthly payout

The service opens its own session per unit of work, so it is wired to the
session factory rather than to the request's session.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement.db.session import get_session_factory
from settlement.schemas.common import ErrorResponse, ValidationErrorResponse
from settlement.schemas.distribution import (
    AutoPayoutResponse,
    DistributionPreviewResponse,
    DistributionReportResponse,
    EligibleAllocationResponse,
    ManualDistributionRequest,
    PayoutOutcomeResponse,
)
from settlement.services.profit_distribution import ProfitDistributionService

router = APIRouter()


def _get_distribution_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ProfitDistributionService:
    return ProfitDistributionService(session_factory)


@router.get(
    "/preview",
    response_model=DistributionPreviewResponse,
    summary="Preview distributable profit",
)
async def preview_distribution(
    service: ProfitDistributionService = Depends(_get_distribution_service),
) -> DistributionPreviewResponse:
    preview = await service.preview()
    return DistributionPreviewResponse(
        allocations=[EligibleAllocationResponse.model_validate(a) for a in preview.allocations],
        count=len(preview.allocations),
        total_distributable=preview.total_distributable,
    )


@router.post(
    "/manual",
    response_model=DistributionReportResponse,
    summary="Run a manual profit distribution",
    description=(
        "Pays ``percentage`` % of each eligible allocation's distributable profit "
        "into the investor's wallet.  Allocations are settled independently; "
        "failures are listed in the report and do not stop the run."
    ),
    responses={422: {"model": ValidationErrorResponse, "description": "Percentage out of range"}},
)
async def run_manual_distribution(
    body: ManualDistributionRequest,
    service: ProfitDistributionService = Depends(_get_distribution_service),
) -> DistributionReportResponse:
    report = await service.distribute_manual(body.percentage, body.admin_notes)
    return DistributionReportResponse(
        percentage=report.percentage,
        succeeded_count=len(report.succeeded),
        failed_count=len(report.failed),
        total_paid=report.total_paid,
        outcomes=[PayoutOutcomeResponse.model_validate(o) for o in report.outcomes],
    )


@router.post(
    "/auto-monthly",
    response_model=AutoPayoutResponse,
    summary="Run the automated monthly payout",
    description=(
        "Pays the current calendar month (UTC). Plans already paid for it are skipped."
    ),
    responses={422: {"model": ErrorResponse, "description": "A plan is already paid for a later month"}},
)
async def run_auto_monthly_payout(
    service: ProfitDistributionService = Depends(_get_distribution_service),
) -> AutoPayoutResponse:
    report = await service.run_monthly_auto_payout()
    return AutoPayoutResponse.model_validate(report)
