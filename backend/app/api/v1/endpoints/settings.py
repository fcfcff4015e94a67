"""
Settings API Endpoints.
"""

from typing import List

from fastapi import APIRouter, Depends, Path, Body
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.dependencies import get_current_user, get_services
from backend.app.core.guards import require_admin
from backend.app.db.session import get_db
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.setting import SettingResponse, UpdateSettingRequest, UpdateSettingResult

router = APIRouter(prefix="/settings", tags=["Settings"])


@router.get("", response_model=List[SettingResponse])
async def list_settings(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.settings.list_settings(db)


@router.get("/{setting_name}", response_model=SettingResponse)
async def get_setting(
    setting_name: str = Path(...),
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.settings.get_setting(db, setting_name)


@router.put("/{setting_name}", response_model=UpdateSettingResult)
async def update_setting(
    setting_name: str = Path(...),
    request: UpdateSettingRequest = Body(...),
    admin: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
    services=Depends(get_services)
):
    return await services.settings.update_setting(db, setting_name, request.setting_value, admin)
