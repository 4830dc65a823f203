"""
Notification outbox model.

A row is written after the ledger change it describes has been committed and
is delivered later by the outbox dispatcher, so a notification failure can
never undo or block a money movement.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class NotificationType(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ALERT = "alert"
    TRANSACTION = "transaction"
    DIVIDEND = "dividend"


class DeliveryStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


class Notification(SQLModel, table=True):
    __tablename__ = "notifications"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: str = Field(index=True, max_length=64)
    investor_id: Optional[uuid.UUID] = Field(default=None, index=True)
    title: str = Field(max_length=255)
    message: str
    type: NotificationType = Field(default=NotificationType.INFO)
    page: str = Field(default="general", max_length=32)
    related_entity_type: Optional[str] = Field(default=None, max_length=32)
    related_entity_id: Optional[uuid.UUID] = None
    delivery_status: DeliveryStatus = Field(default=DeliveryStatus.PENDING, index=True)
    attempts: int = Field(default=0)
    last_error: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
    delivered_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
