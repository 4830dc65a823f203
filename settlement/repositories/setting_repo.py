"""Platform setting repository."""

from typing import Optional

from settlement.models.setting import PlatformSetting
from settlement.repositories.base import BaseRepository


class PlatformSettingRepository(BaseRepository[PlatformSetting]):
    """Concrete repository for :class:`PlatformSetting` entities."""

    async def get_by_key(self, key: str) -> Optional[PlatformSetting]:
        return await self.first(setting_key=key)
