"""
V1 API router aggregation.

All versioned endpoint routers are mounted here under a common prefix.
The top-level ``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from settlement.api.v1.endpoints import (
    distributions,
    investor_requests,
    investors,
    maintenance,
    notifications,
    payouts,
    settings,
    withdrawals,
)

api_router = APIRouter()

api_router.include_router(withdrawals.router, prefix="/withdrawals", tags=["Withdrawals"])
api_router.include_router(payouts.router, prefix="/payouts", tags=["Payouts"])
api_router.include_router(
    distributions.router, prefix="/profit-distribution", tags=["Profit Distribution"]
)
api_router.include_router(investors.router, prefix="/investors", tags=["Investors"])
api_router.include_router(
    investor_requests.router, prefix="/investor-requests", tags=["Investor Requests"]
)
api_router.include_router(settings.router, prefix="/settings", tags=["Settings"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(maintenance.router, prefix="/maintenance", tags=["Maintenance"])
