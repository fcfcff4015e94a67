"""
Setting Service.

Reads and validated updates of the tunable settings. Every update is
written through to the settings cache.
"""

import logging
import uuid
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.exceptions import BadRequestError, ResourceNotFoundError
from backend.app.models.enums import SettingName
from backend.app.models.setting import Setting
from backend.app.schemas.auth import CurrentUser
from backend.app.schemas.setting import UpdateSettingResult
from backend.app.services.audit import log_event, AuditAction
from backend.app.services.settings_cache import SettingsCache

logger = logging.getLogger(__name__)

# Inclusive bounds for integer settings
INTEGER_BOUNDS = {
    SettingName.MINS_BETWEEN_LOCATION_HEARTBEATS: (1, 20),
    SettingName.COOL_OFF_SECONDS_BTWN_DIFF_ROUTE_SCANS: (5, 600),
}

BOOLEAN_SETTINGS = {
    SettingName.UPDATE_DOC_STATUS_TO_ERP,
    SettingName.SEND_TRACKING_SMS,
}


def validate_setting_value(name: str, value: str) -> str:
    """
    Validate a new value for a setting and return it normalized.
    
    Raises:
        BadRequestError: unknown setting name or value out of range
    """
    try:
        setting_name = SettingName(name)
    except ValueError:
        raise BadRequestError(f"Unknown setting '{name}'")
    
    value = value.strip()
    
    if setting_name in INTEGER_BOUNDS:
        low, high = INTEGER_BOUNDS[setting_name]
        try:
            number = int(value)
        except ValueError:
            raise BadRequestError(f"{name} must be a whole number")
        if number < low or number > high:
            raise BadRequestError(f"{name} must be between {low} and {high}")
        return str(number)
    
    if setting_name in BOOLEAN_SETTINGS:
        if value.lower() not in ("true", "false"):
            raise BadRequestError(f"{name} must be 'true' or 'false'")
        return value.lower()
    
    return value


class SettingService:
    
    def __init__(self, settings_cache: SettingsCache):
        self.settings_cache = settings_cache
    
    async def get_setting(self, db: AsyncSession, name: str) -> Setting:
        result = await db.execute(select(Setting).where(Setting.setting_name == name))
        setting = result.scalar_one_or_none()
        if not setting:
            raise ResourceNotFoundError("Setting", name)
        return setting
    
    async def list_settings(self, db: AsyncSession) -> List[Setting]:
        result = await db.execute(select(Setting).order_by(Setting.setting_name))
        return list(result.scalars().all())
    
    async def update_setting(
        self,
        db: AsyncSession,
        name: str,
        value: str,
        current_user: CurrentUser
    ) -> UpdateSettingResult:
        """
        Validate, persist and cache a new setting value.
        
        A known setting without a row is created.
        """
        new_value = validate_setting_value(name, value)
        
        result = await db.execute(select(Setting).where(Setting.setting_name == name))
        setting = result.scalar_one_or_none()
        
        if setting:
            old_value = setting.setting_value
            setting.setting_value = new_value
        else:
            old_value = ""
            setting = Setting(id=str(uuid.uuid4()), setting_name=name, setting_value=new_value)
            db.add(setting)
        
        log_event(
            db=db,
            action=AuditAction.SETTING_UPDATED,
            actor_id=current_user.id,
            actor_name=current_user.username,
            metadata={"setting_name": name, "old_value": old_value, "new_value": new_value}
        )
        await db.commit()
        
        self.settings_cache.update_in_cache(name, new_value)
        logger.info("Setting %s changed from %r to %r by %s", name, old_value, new_value, current_user.id)
        
        return UpdateSettingResult(
            success=True,
            message=f"Setting {name} updated successfully",
            setting_name=name,
            old_value=old_value,
            new_value=new_value,
        )
