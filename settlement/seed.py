"""
Seed script — populates the database with sample data for development / demo.

Usage:
    USE_SQLITE=true SQLITE_PATH=dev.db python -m settlement.seed

The script is idempotent: it does nothing when plans already exist.

The sample set covers every admin workflow: a pending withdrawal and payout,
a plan due for its monthly auto-payout, an allocation with unpaid profit,
an onboarding request, and a user with two investor records to merge.
"""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlmodel import SQLModel

import settlement.models  # noqa: F401
from settlement.db.session import AsyncSessionLocal, engine
from settlement.models.allocation import FundAllocation
from settlement.models.investor import InvestmentExperience, Investor, InvestorRequest, KycStatus
from settlement.models.plan import FundPlan, PayoutFrequency
from settlement.models.requests import FundPayoutRequest, FundWithdrawalRequest, WithdrawalType
from settlement.models.setting import PlatformSetting
from settlement.models.wallet import FundWallet

logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(message)s")
logger = logging.getLogger(__name__)

GROWTH_PLAN_ID = uuid.UUID("a1000000-0000-4000-8000-000000000001")
INCOME_PLAN_ID = uuid.UUID("a1000000-0000-4000-8000-000000000002")
ASHA_ID = uuid.UUID("b2000000-0000-4000-8000-000000000001")
RAVI_ID = uuid.UUID("b2000000-0000-4000-8000-000000000002")
RAVI_DUP_ID = uuid.UUID("b2000000-0000-4000-8000-000000000003")
ASHA_GROWTH_ID = uuid.UUID("c3000000-0000-4000-8000-000000000001")
RAVI_INCOME_ID = uuid.UUID("c3000000-0000-4000-8000-000000000002")
RAVI_DUP_INCOME_ID = uuid.UUID("c3000000-0000-4000-8000-000000000003")


def _at(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, 9, 0, 0, tzinfo=timezone.utc)


def build_plans() -> list:
    return [
        FundPlan(
            id=GROWTH_PLAN_ID,
            plan_code="GROWTH-01",
            plan_name="Equity Growth Plan",
            expected_return_percent=Decimal("12.0000"),
            profit_payout_frequency=PayoutFrequency.QUARTERLY,
            created_at=_at(2024, 1, 10),
        ),
        FundPlan(
            id=INCOME_PLAN_ID,
            plan_code="INCOME-01",
            plan_name="Monthly Income Plan",
            expected_return_percent=Decimal("1.0000"),
            profit_payout_frequency=PayoutFrequency.MONTHLY,
            auto_payout_enabled=True,
            created_at=_at(2024, 1, 10),
        ),
    ]


def build_investors() -> list:
    return [
        Investor(
            id=ASHA_ID,
            user_id="user-asha",
            investor_code="INV1704873600000",
            full_name="Asha Menon",
            email="asha@example.com",
            bank_account_number="50100012345678",
            bank_ifsc_code="HDFC0000123",
            bank_name="HDFC Bank",
            kyc_status=KycStatus.VERIFIED,
            created_at=_at(2024, 1, 15),
        ),
        Investor(
            id=RAVI_ID,
            user_id="user-ravi",
            investor_code="INV1706745600000",
            full_name="Ravi Kumar",
            email="ravi@example.com",
            kyc_status=KycStatus.VERIFIED,
            created_at=_at(2024, 2, 1),
        ),
        # Legacy duplicate of Ravi, created later; merged into the record above.
        Investor(
            id=RAVI_DUP_ID,
            user_id="user-ravi",
            investor_code="INV1709251200000",
            full_name="Ravi Kumar",
            email="ravi.k@example.com",
            created_at=_at(2024, 3, 1),
        ),
    ]


def build_wallets() -> list:
    return [
        FundWallet(investor_id=ASHA_ID, available_balance=Decimal("25000.00")),
        FundWallet(investor_id=RAVI_ID, available_balance=Decimal("1000.00")),
        FundWallet(
            investor_id=RAVI_DUP_ID,
            available_balance=Decimal("500.00"),
            locked_balance=Decimal("200.00"),
        ),
    ]


def build_allocations() -> list:
    return [
        FundAllocation(
            id=ASHA_GROWTH_ID,
            investor_id=ASHA_ID,
            fund_plan_id=GROWTH_PLAN_ID,
            units_held=Decimal("10000.00000000"),
            average_nav=Decimal("20.0000"),
            total_invested=Decimal("200000.00"),
            current_value=Decimal("250000.00"),
            profit_loss=Decimal("50000.00"),
            profit_loss_percent=Decimal("25.0000"),
        ),
        FundAllocation(
            id=RAVI_INCOME_ID,
            investor_id=RAVI_ID,
            fund_plan_id=INCOME_PLAN_ID,
            units_held=Decimal("100000.00000000"),
            total_invested=Decimal("100000.00"),
            current_value=Decimal("120000.00"),
            profit_loss=Decimal("20000.00"),
            profit_loss_percent=Decimal("20.0000"),
        ),
        FundAllocation(
            id=RAVI_DUP_INCOME_ID,
            investor_id=RAVI_DUP_ID,
            fund_plan_id=INCOME_PLAN_ID,
            units_held=Decimal("50000.00000000"),
            total_invested=Decimal("50000.00"),
            current_value=Decimal("52000.00"),
            profit_loss=Decimal("2000.00"),
            profit_loss_percent=Decimal("4.0000"),
        ),
    ]


def build_requests() -> list:
    return [
        FundWithdrawalRequest(
            investor_id=ASHA_ID,
            allocation_id=ASHA_GROWTH_ID,
            fund_plan_id=GROWTH_PLAN_ID,
            withdrawal_amount=Decimal("20000.00"),
            withdrawal_type=WithdrawalType.PARTIAL,
        ),
        FundPayoutRequest(
            investor_id=ASHA_ID,
            requested_amount=Decimal("5000.00"),
            bank_account_number="50100012345678",
            bank_ifsc_code="HDFC0000123",
            bank_name="HDFC Bank",
        ),
        InvestorRequest(
            user_id="user-meera",
            full_name="Meera Iyer",
            email="meera@example.com",
            investment_experience=InvestmentExperience.INTERMEDIATE,
        ),
    ]


def build_settings() -> list:
    return [
        PlatformSetting(
            setting_key="fund_withdrawals_enabled",
            setting_value="true",
            description="Enable or disable withdrawal processing globally",
        ),
        PlatformSetting(
            setting_key="fund_payouts_enabled",
            setting_value="true",
            description="Enable or disable payout processing globally",
        ),
        PlatformSetting(
            setting_key="fund_min_notice_period_days",
            setting_value="0",
            description="Minimum age in days of a withdrawal request before it can be processed",
        ),
    ]


async def seed() -> None:
    """Create tables and insert sample data if the database is empty."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    async with AsyncSessionLocal() as session:
        result = await session.execute(select(FundPlan).limit(1))
        if result.scalars().first() is not None:
            logger.info("Database already contains data, skipping seed.")
            return

        # Parents first; each batch is committed before its dependants.
        batches = [
            build_plans() + build_investors() + build_settings(),
            build_wallets() + build_allocations(),
            build_requests(),
        ]
        total = 0
        for batch in batches:
            session.add_all(batch)
            await session.commit()
            total += len(batch)

        logger.info("Seeded %d records", total)


if __name__ == "__main__":
    asyncio.run(seed())
