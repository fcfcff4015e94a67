"""
Settings cache.

In-memory map of the `setting` table. One instance is built at startup,
kept on `app.state` and passed to the services that need tunable values.
"""

import logging
from typing import Dict, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.models.enums import SettingName
from backend.app.models.setting import Setting

logger = logging.getLogger(__name__)


class SettingsCache:
    
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})
    
    async def load(self, db: AsyncSession) -> None:
        """Replace the cached map with the current setting rows; keep the old map on failure."""
        try:
            result = await db.execute(select(Setting))
            rows = result.scalars().all()
        except Exception:
            logger.exception("Failed to load settings; keeping %d cached values", len(self._values))
            return
        self._values = {row.setting_name: row.setting_value for row in rows}
        logger.info("Loaded %d settings into cache", len(self._values))
    
    def get(self, name: str) -> Optional[str]:
        return self._values.get(name)
    
    def update_in_cache(self, name: str, value: str) -> None:
        self._values[name] = value
    
    def _get_int(self, name: SettingName, default: int) -> int:
        raw = self._values.get(name.value)
        if raw is None:
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Setting %s has non-numeric value %r; using %d", name.value, raw, default)
            return default
    
    def _get_bool(self, name: SettingName) -> bool:
        raw = self._values.get(name.value)
        return raw is not None and raw.strip().lower() == "true"
    
    def get_cool_off_seconds(self) -> int:
        return self._get_int(SettingName.COOL_OFF_SECONDS_BTWN_DIFF_ROUTE_SCANS, settings.fallback_cool_off_seconds)
    
    def get_minutes_between_location_heartbeats(self) -> int:
        return self._get_int(SettingName.MINS_BETWEEN_LOCATION_HEARTBEATS, settings.fallback_heartbeat_minutes)
    
    def get_update_status_to_external_system(self) -> bool:
        return self._get_bool(SettingName.UPDATE_DOC_STATUS_TO_ERP)
    
    def get_send_tracking_sms(self) -> bool:
        return self._get_bool(SettingName.SEND_TRACKING_SMS)
