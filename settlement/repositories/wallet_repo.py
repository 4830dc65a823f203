"""
Wallet repository.

Balance writes go through :meth:`WalletRepository.compare_and_swap` instead
of the generic ``update``: the UPDATE only matches when the row still carries
the version the caller read, and bumps it.  Zero matched rows means another
writer committed in between and the caller's view is stale.
"""

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import update

from settlement.core.exceptions import ConcurrentModification
from settlement.models.wallet import FundWallet
from settlement.repositories.base import BaseRepository

logger = logging.getLogger(__name__)


class WalletRepository(BaseRepository[FundWallet]):
    """Concrete repository for :class:`FundWallet` entities."""

    async def get_by_investor(self, investor_id: UUID) -> Optional[FundWallet]:
        return await self.first(investor_id=investor_id)

    async def compare_and_swap(self, wallet: FundWallet, **changes: Any) -> FundWallet:
        """
        Apply ``changes`` to ``wallet`` iff its stored version is unchanged.

        Raises :class:`ConcurrentModification` when the version moved on.
        Returns the wallet reloaded from the database.
        """
        expected_version = wallet.version

        async def _cas() -> FundWallet:
            stmt = (
                update(FundWallet)
                .where(
                    FundWallet.id == wallet.id,  # type: ignore[arg-type]
                    FundWallet.version == expected_version,  # type: ignore[arg-type]
                )
                .values(**changes, version=expected_version + 1)
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)
            if result.rowcount != 1:
                await self.db.rollback()
                logger.warning(
                    "Stale wallet write rejected (expected version %d)",
                    expected_version,
                    extra={"wallet_id": str(wallet.id)},
                )
                raise ConcurrentModification("FundWallet", wallet.id)
            await self._commit("compare_and_swap")
            await self.db.refresh(wallet)
            return wallet

        return await self._guarded(_cas)
