"""Admin-editable platform setting (string key/value)."""

import uuid
from typing import Optional

from sqlmodel import Field, SQLModel


class PlatformSetting(SQLModel, table=True):
    __tablename__ = "platform_settings"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    setting_key: str = Field(unique=True, index=True, max_length=64)
    setting_value: str = Field(max_length=255)
    description: Optional[str] = None
