"""
Platform settings endpoints.

- GET  /settings  — List stored ``fund_*`` settings
- PUT  /settings  — Create or overwrite one setting
"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from settlement.db.session import get_db
from settlement.models.setting import PlatformSetting
from settlement.repositories.setting_repo import PlatformSettingRepository
from settlement.schemas.common import ErrorResponse
from settlement.schemas.settings import SettingResponse, SettingUpdate
from settlement.services.platform_config import PlatformSettingService

router = APIRouter()


def _get_setting_service(db: AsyncSession = Depends(get_db)) -> PlatformSettingService:
    return PlatformSettingService(PlatformSettingRepository(PlatformSetting, db))


@router.get("", response_model=List[SettingResponse], summary="List platform settings")
async def list_settings(
    service: PlatformSettingService = Depends(_get_setting_service),
) -> List[SettingResponse]:
    return await service.list_settings()


@router.put(
    "",
    response_model=SettingResponse,
    summary="Create or update a platform setting",
    responses={422: {"model": ErrorResponse, "description": "Unknown key or unparsable value"}},
)
async def upsert_setting(
    body: SettingUpdate,
    service: PlatformSettingService = Depends(_get_setting_service),
) -> SettingResponse:
    return await service.upsert_setting(body.setting_key, body.setting_value, body.description)
