"""
Wallet ledger operations.

Every operation re-reads the wallet, derives the full new balance set and
writes it back through :meth:`WalletRepository.compare_and_swap`.  A write
that lost a race raises :class:`ConcurrentModification` and changes nothing;
it is not retried here.

The operations only move balances.  Recording the matching
:class:`FundTransaction` is the calling workflow's job, because only the
workflow knows which event (hold, release, redemption, payout ...) it is.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from settlement.core.exceptions import (
    BusinessRuleViolation,
    InsufficientBalance,
    NotFoundException,
)
from settlement.core.money import ZERO, floor_zero, q_money, to_decimal
from settlement.models.wallet import FundWallet
from settlement.repositories.wallet_repo import WalletRepository

logger = logging.getLogger(__name__)


class WalletLedger:
    """Balance mutations on :class:`FundWallet` records."""

    def __init__(self, wallet_repo: WalletRepository):
        self._wallet_repo = wallet_repo

    async def _load(self, wallet_id: UUID) -> FundWallet:
        wallet = await self._wallet_repo.get_fresh(wallet_id)
        if wallet is None:
            raise NotFoundException("FundWallet", wallet_id)
        return wallet

    @staticmethod
    def _positive(amount: Any) -> Decimal:
        value = q_money(amount)
        if value <= ZERO:
            raise BusinessRuleViolation(f"Amount must be positive, got {value}")
        return value

    async def _write(self, wallet: FundWallet, op: str, amount: Decimal, **balances: Any) -> FundWallet:
        balances["last_transaction_date"] = datetime.now(timezone.utc)
        updated = await self._wallet_repo.compare_and_swap(wallet, **balances)
        logger.info(
            "Wallet %s %s ₹%s (available=%s, locked=%s)",
            updated.id,
            op,
            amount,
            updated.available_balance,
            updated.locked_balance,
            extra={"wallet_id": str(updated.id), "amount": str(amount)},
        )
        return updated

    async def credit(self, wallet_id: UUID, amount: Any) -> FundWallet:
        """available += amount."""
        value = self._positive(amount)
        wallet = await self._load(wallet_id)
        return await self._write(
            wallet,
            "credit",
            value,
            available_balance=to_decimal(wallet.available_balance) + value,
        )

    async def lock_for_withdrawal(self, wallet_id: UUID, amount: Any) -> FundWallet:
        """Move ``amount`` from available to locked; requires available ≥ amount."""
        value = self._positive(amount)
        wallet = await self._load(wallet_id)
        available = to_decimal(wallet.available_balance)
        if available < value:
            raise InsufficientBalance(available, value)
        return await self._write(
            wallet,
            "lock",
            value,
            available_balance=available - value,
            locked_balance=to_decimal(wallet.locked_balance) + value,
        )

    async def release_lock(self, wallet_id: UUID, amount: Any) -> FundWallet:
        """Return a hold to available; locked is floored at zero."""
        value = self._positive(amount)
        wallet = await self._load(wallet_id)
        return await self._write(
            wallet,
            "release",
            value,
            available_balance=to_decimal(wallet.available_balance) + value,
            locked_balance=floor_zero(to_decimal(wallet.locked_balance) - value),
        )

    async def settle_lock(self, wallet_id: UUID, amount: Any) -> FundWallet:
        """Drop a hold without touching available (floored at zero)."""
        value = self._positive(amount)
        wallet = await self._load(wallet_id)
        return await self._write(
            wallet,
            "settle",
            value,
            locked_balance=floor_zero(to_decimal(wallet.locked_balance) - value),
        )

    async def debit_for_payout(self, wallet_id: UUID, amount: Any) -> FundWallet:
        """available -= amount and total_withdrawn += amount; requires available ≥ amount."""
        value = self._positive(amount)
        wallet = await self._load(wallet_id)
        available = to_decimal(wallet.available_balance)
        if available < value:
            raise InsufficientBalance(available, value)
        return await self._write(
            wallet,
            "debit",
            value,
            available_balance=available - value,
            total_withdrawn=to_decimal(wallet.total_withdrawn) + value,
        )
