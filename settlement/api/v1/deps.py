"""
Dependencies shared by several routers.

The platform configuration snapshot is resolved here, once per request, and
handed to the workflow calls explicitly.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.session import get_db
from settlement.models.investor import Investor, InvestorRequest
from settlement.models.notification import Notification
from settlement.models.setting import PlatformSetting
from settlement.models.wallet import FundWallet
from settlement.repositories.investor_repo import InvestorRepository, InvestorRequestRepository
from settlement.repositories.notification_repo import NotificationRepository
from settlement.repositories.setting_repo import PlatformSettingRepository
from settlement.repositories.wallet_repo import WalletRepository
from settlement.services.notifications import NotificationService
from settlement.services.onboarding_service import OnboardingService
from settlement.services.platform_config import PlatformConfig, config_provider


async def get_platform_config(db: AsyncSession = Depends(get_db)) -> PlatformConfig:
    return await config_provider.get(PlatformSettingRepository(PlatformSetting, db))


def build_notifier(db: AsyncSession) -> NotificationService:
    return NotificationService(NotificationRepository(Notification, db))


def get_onboarding_service(db: AsyncSession = Depends(get_db)) -> OnboardingService:
    """Shared by the investor and investor-request routers."""
    return OnboardingService(
        request_repo=InvestorRequestRepository(InvestorRequest, db),
        investor_repo=InvestorRepository(Investor, db),
        wallet_repo=WalletRepository(FundWallet, db),
        notifier=build_notifier(db),
    )
