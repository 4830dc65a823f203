"""
Notification outbox.

Workflows call :meth:`NotificationService.enqueue` only after the ledger
change it describes has been committed.  Enqueueing is best effort: a failure
is logged and swallowed, never propagated into the workflow.  The row is
written in a session of its own, so a failed insert leaves the workflow's
session and the records it returns untouched.

:meth:`NotificationService.dispatch_pending` delivers queued rows later.  With
no webhook configured the row is considered delivered in-app as soon as it is
dispatched.  With a webhook, each row is POSTed as JSON; transport errors are
retried with backoff, and a row that keeps failing is marked ``failed`` after
``max_attempts`` dispatch runs.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

import httpx

from settlement.core.config import settings
from settlement.core.resilience import retry_with_backoff
from settlement.models.notification import DeliveryStatus, Notification, NotificationType
from settlement.repositories.notification_repo import NotificationRepository

logger = logging.getLogger(__name__)


class NotificationService:
    def __init__(
        self,
        repo: NotificationRepository,
        webhook_url: str = settings.NOTIFICATION_WEBHOOK_URL,
        max_attempts: int = settings.NOTIFICATION_MAX_ATTEMPTS,
        client: Optional[httpx.AsyncClient] = None,
        retries: int = 2,
        base_delay: float = 0.5,
    ):
        self._repo = repo
        self._webhook_url = webhook_url
        self._max_attempts = max_attempts
        self._client = client
        self._post = retry_with_backoff(
            max_retries=retries,
            base_delay=base_delay,
            retryable_exceptions=(httpx.TransportError,),
        )(self._post_once)

    async def enqueue(
        self,
        user_id: str,
        title: str,
        message: str,
        type: NotificationType = NotificationType.INFO,
        page: str = "general",
        investor_id: Optional[UUID] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[UUID] = None,
    ) -> Optional[Notification]:
        """Queue a notification; returns ``None`` instead of raising on failure."""
        try:
            return await self._repo.create_isolated(
                Notification(
                    user_id=user_id,
                    investor_id=investor_id,
                    title=title,
                    message=message,
                    type=type,
                    page=page,
                    related_entity_type=related_entity_type,
                    related_entity_id=related_entity_id,
                )
            )
        except Exception:
            logger.warning(
                "Could not queue notification %r for user %s; ledger change stands",
                title,
                user_id,
                exc_info=True,
            )
            return None

    # ── Delivery ──

    async def _post_once(self, client: httpx.AsyncClient, notification: Notification) -> None:
        response = await client.post(
            self._webhook_url,
            json={
                "id": str(notification.id),
                "user_id": notification.user_id,
                "title": notification.title,
                "message": notification.message,
                "type": notification.type.value,
                "page": notification.page,
                "related_entity_type": notification.related_entity_type,
                "related_entity_id": (
                    str(notification.related_entity_id)
                    if notification.related_entity_id
                    else None
                ),
                "created_at": notification.created_at.isoformat(),
            },
        )
        response.raise_for_status()

    async def _deliver(self, client: Optional[httpx.AsyncClient], notification: Notification) -> bool:
        notification.attempts += 1
        try:
            if client is not None:
                await self._post(client, notification)
        except httpx.HTTPError as exc:
            notification.last_error = f"{type(exc).__name__}: {exc}"[:500]
            if notification.attempts >= self._max_attempts:
                notification.delivery_status = DeliveryStatus.FAILED
                logger.error(
                    "Notification %s failed permanently after %d attempts: %s",
                    notification.id,
                    notification.attempts,
                    exc,
                )
            else:
                logger.warning(
                    "Notification %s delivery attempt %d failed: %s",
                    notification.id,
                    notification.attempts,
                    exc,
                )
            await self._repo.update(notification)
            return False

        notification.delivery_status = DeliveryStatus.DELIVERED
        notification.delivered_at = datetime.now(timezone.utc)
        notification.last_error = None
        await self._repo.update(notification)
        return True

    async def dispatch_pending(self, limit: int = 100) -> Dict[str, Any]:
        """Deliver up to ``limit`` pending notifications, oldest first."""
        pending = await self._repo.get_pending(limit)
        delivered = failed = 0

        if not self._webhook_url:
            for notification in pending:
                if await self._deliver(None, notification):
                    delivered += 1
        elif self._client is not None:
            for notification in pending:
                if await self._deliver(self._client, notification):
                    delivered += 1
                else:
                    failed += 1
        else:
            async with httpx.AsyncClient(timeout=settings.GATEWAY_TIMEOUT) as client:
                for notification in pending:
                    if await self._deliver(client, notification):
                        delivered += 1
                    else:
                        failed += 1

        logger.info(
            "Notification dispatch: %d delivered, %d failed of %d pending",
            delivered,
            failed,
            len(pending),
        )
        return {"pending": len(pending), "delivered": delivered, "failed": failed}
