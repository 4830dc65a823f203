"""
Notification outbox endpoint.

- POST  /notifications/dispatch  — Deliver queued notifications
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.api.v1.deps import build_notifier
from settlement.db.session import get_db
from settlement.schemas.settings import DispatchResponse
from settlement.services.notifications import NotificationService

router = APIRouter()


def _get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return build_notifier(db)


@router.post("/dispatch", response_model=DispatchResponse, summary="Dispatch pending notifications")
async def dispatch_notifications(
    limit: int = Query(100, ge=1, le=1000, description="Max notifications to deliver"),
    service: NotificationService = Depends(_get_notification_service),
) -> DispatchResponse:
    return DispatchResponse(**await service.dispatch_pending(limit))
