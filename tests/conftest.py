"""
Shared pytest fixtures for unit tests.

All tests run with ``USE_SQLITE=true``.  Service tests use mocked
repositories; the workflow tests that need real rows (profit distribution,
duplicate merge, repositories) get a throw-away SQLite file per test through
the ``session_factory`` fixture.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from typing import Optional  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

import settlement.models  # noqa: E402,F401
from settlement.db.session import build_session_factory, enable_sqlite_foreign_keys  # noqa: E402
from settlement.models.allocation import AllocationStatus, FundAllocation  # noqa: E402
from settlement.models.investor import (  # noqa: E402
    InvestmentExperience,
    Investor,
    InvestorRequest,
    RequestStatus,
)
from settlement.models.plan import FundPlan, PayoutFrequency  # noqa: E402
from settlement.models.requests import (  # noqa: E402
    FundPayoutRequest,
    FundWithdrawalRequest,
    SettlementStatus,
    WithdrawalType,
)
from settlement.models.wallet import FundWallet  # noqa: E402

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers: domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

INVESTOR_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
INVESTOR_ID_2 = uuid.UUID("55555555-5555-5555-5555-555555555555")
WALLET_ID = uuid.UUID("66666666-6666-6666-6666-666666666666")
PLAN_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
ALLOCATION_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
WITHDRAWAL_ID = uuid.UUID("77777777-7777-7777-7777-777777777777")
PAYOUT_ID = uuid.UUID("88888888-8888-8888-8888-888888888888")
REQUEST_ID = uuid.UUID("99999999-9999-9999-9999-999999999999")


def make_investor(
    *,
    id: uuid.UUID = INVESTOR_ID,
    user_id: str = "user-1",
    investor_code: str = "INV1700000000000",
    full_name: str = "Test Investor",
    email: str = "investor@example.com",
    created_at: Optional[datetime] = None,
) -> Investor:
    """Create an Investor domain object with sensible test defaults."""
    return Investor(
        id=id,
        user_id=user_id,
        investor_code=investor_code,
        full_name=full_name,
        email=email,
        mobile_number="+919800000000",
        created_at=created_at or datetime.now(timezone.utc),
    )


def make_wallet(
    *,
    id: Optional[uuid.UUID] = WALLET_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    available: str = "0",
    locked: str = "0",
    deposited: str = "0",
    withdrawn: str = "0",
    version: int = 1,
) -> FundWallet:
    """Create a FundWallet; pass ``id=None`` for a fresh random id."""
    return FundWallet(
        id=id or uuid.uuid4(),
        investor_id=investor_id,
        available_balance=Decimal(available),
        locked_balance=Decimal(locked),
        total_deposited=Decimal(deposited),
        total_withdrawn=Decimal(withdrawn),
        version=version,
    )


def make_plan(
    *,
    id: uuid.UUID = PLAN_ID,
    plan_code: str = "INCOME-01",
    expected_return_percent: str = "1",
    frequency: PayoutFrequency = PayoutFrequency.MONTHLY,
    auto_payout_enabled: bool = True,
    last_auto_payout_month: Optional[str] = None,
) -> FundPlan:
    return FundPlan(
        id=id,
        plan_code=plan_code,
        plan_name=f"Plan {plan_code}",
        expected_return_percent=Decimal(expected_return_percent),
        profit_payout_frequency=frequency,
        auto_payout_enabled=auto_payout_enabled,
        last_auto_payout_month=last_auto_payout_month,
    )


def make_allocation(
    *,
    id: Optional[uuid.UUID] = ALLOCATION_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    fund_plan_id: uuid.UUID = PLAN_ID,
    invested: str = "100000",
    value: str = "120000",
    units: str = "100000",
    average_nav: Optional[str] = None,
    status: AllocationStatus = AllocationStatus.ACTIVE,
) -> FundAllocation:
    """Create a FundAllocation whose profit_loss matches value − invested."""
    return FundAllocation(
        id=id or uuid.uuid4(),
        investor_id=investor_id,
        fund_plan_id=fund_plan_id,
        units_held=Decimal(units),
        average_nav=Decimal(average_nav) if average_nav else None,
        total_invested=Decimal(invested),
        current_value=Decimal(value),
        profit_loss=Decimal(value) - Decimal(invested),
        status=status,
    )


def make_withdrawal(
    *,
    id: uuid.UUID = WITHDRAWAL_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    allocation_id: uuid.UUID = ALLOCATION_ID,
    amount: str = "30000",
    withdrawal_type: WithdrawalType = WithdrawalType.PARTIAL,
    status: SettlementStatus = SettlementStatus.PENDING,
    created_at: Optional[datetime] = None,
) -> FundWithdrawalRequest:
    return FundWithdrawalRequest(
        id=id,
        investor_id=investor_id,
        allocation_id=allocation_id,
        fund_plan_id=PLAN_ID,
        withdrawal_amount=Decimal(amount),
        withdrawal_type=withdrawal_type,
        status=status,
        created_at=created_at or datetime.now(timezone.utc),
    )


def make_payout(
    *,
    id: uuid.UUID = PAYOUT_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    amount: str = "4000",
    status: SettlementStatus = SettlementStatus.APPROVED,
    stripe_account_id: Optional[str] = None,
) -> FundPayoutRequest:
    return FundPayoutRequest(
        id=id,
        investor_id=investor_id,
        requested_amount=Decimal(amount),
        bank_account_number="50100012345678",
        bank_ifsc_code="HDFC0000123",
        bank_name="HDFC Bank",
        stripe_account_id=stripe_account_id,
        status=status,
        created_at=datetime.now(timezone.utc),
    )


def make_investor_request(
    *,
    id: uuid.UUID = REQUEST_ID,
    user_id: str = "user-new",
    experience: InvestmentExperience = InvestmentExperience.INTERMEDIATE,
    status: RequestStatus = RequestStatus.PENDING,
) -> InvestorRequest:
    return InvestorRequest(
        id=id,
        user_id=user_id,
        full_name="New Investor",
        email="new@example.com",
        investment_experience=experience,
        status=status,
        created_at=datetime.now(timezone.utc),
    )


async def apply_wallet_changes(wallet: FundWallet, **changes) -> FundWallet:
    """Stand-in for ``WalletRepository.compare_and_swap`` on a mocked repo."""
    for name, value in changes.items():
        setattr(wallet, name, value)
    wallet.version += 1
    return wallet


def returns_argument(entity):
    return entity


async def persist(session_factory, *rows) -> None:
    """Insert ``rows`` in order, one commit per row (parents first)."""
    async with session_factory() as session:
        for row in rows:
            session.add(row)
            await session.commit()


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/refresh/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.merge = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest.fixture()
def notifier():
    return AsyncMock()


@pytest_asyncio.fixture()
async def session_factory(tmp_path):
    """Session factory bound to a fresh SQLite file with every table created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'settlement.db'}")
    enable_sqlite_foreign_keys(engine)
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture(autouse=True)
def _reset_global_state():
    """
    Reset the process-wide config snapshot and circuit breakers around
    every test to prevent cross-test pollution.
    """
    from settlement.core.resilience import CircuitState, _breakers
    from settlement.services.platform_config import config_provider

    def reset():
        config_provider.invalidate()
        for breaker in _breakers.values():
            breaker._state = CircuitState.CLOSED
            breaker._failure_count = 0
            breaker._success_count = 0

    reset()
    yield
    reset()
