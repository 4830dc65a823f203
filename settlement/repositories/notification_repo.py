"""Notification outbox repository."""

from typing import List

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from settlement.models.notification import DeliveryStatus, Notification
from settlement.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Concrete repository for :class:`Notification` outbox rows."""

    async def create_isolated(self, notification: Notification) -> Notification:
        """
        Insert ``notification`` through a short-lived session of its own.

        The session this repository is bound to is never flushed or rolled
        back here, so rows the calling workflow already committed stay loaded
        on it even when the insert fails.
        """
        async with AsyncSession(bind=self.db.bind, expire_on_commit=False) as session:
            return await type(self)(self.model, session).create(notification)

    async def get_pending(self, limit: int = 100) -> List[Notification]:
        """Oldest undelivered notifications first."""

        async def _pending() -> List[Notification]:
            stmt = (
                select(Notification)
                .where(Notification.delivery_status == DeliveryStatus.PENDING)
                .order_by(Notification.created_at)
                .limit(limit)
            )
            result = await self.db.execute(stmt)
            return list(result.scalars().all())

        return await self._guarded(_pending)
