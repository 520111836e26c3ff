"""
Store settings (feature flags) read through the backend API, with the
settings table as fallback and a TTL cache in front of the flag reads.
"""

import logging
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.models.setting import Setting
from storefront.services.cache import TTLCache
from storefront.utils.api_client import BackendClient
from storefront.utils.errors import BackendError

logger = logging.getLogger(__name__)

SETTINGS_PATH = "/api/settings"

MAINTENANCE_MODE = "maintenance_mode"
ANNOUNCEMENT_TEXT = "announcement_text"
ALLOW_BACKORDERS = "automation_allow_backorders"
LOW_STOCK_THRESHOLD = "low_stock_threshold"

DEFAULT_LOW_STOCK_THRESHOLD = 5


def is_truthy(value) -> bool:
    return str(value if value is not None else "").strip().lower() in ("true", "1", "yes", "on")


class SettingsService:
    def __init__(self, client: BackendClient, cache: TTLCache, session_factory: Callable[[], Session]):
        self.client = client
        self.cache = cache
        self.session_factory = session_factory

    async def get_settings(self, keys: Optional[Iterable[str]] = None,
                           category: Optional[str] = None) -> Dict[str, Optional[str]]:
        keys = [k for k in (keys or []) if k]
        params = {}
        if keys:
            params["keys"] = ",".join(keys)
        if category:
            params["category"] = category

        try:
            result = await self.client.get(SETTINGS_PATH, params=params or None)
            data = result.get("data") if isinstance(result, dict) else None
            if isinstance(data, dict):
                return data
            logger.warning("Settings endpoint returned no data, using database")
        except BackendError as e:
            logger.warning(f"Falling back to database for settings: {e.message}")

        return self._read_from_db(keys, category)

    def _read_from_db(self, keys: List[str], category: Optional[str]) -> Dict[str, Optional[str]]:
        db = self.session_factory()
        try:
            query = db.query(Setting)
            if keys:
                query = query.filter(Setting.key.in_(keys))
            if category:
                query = query.filter(Setting.category == category)
            return {row.key: row.value for row in query.all()}
        finally:
            db.close()

    async def _flag(self, key: str, default=None):
        cached = self.cache.get(key)
        if cached is not None:
            return cached.value
        try:
            data = await self.get_settings([key])
            value = data.get(key, data.get(key.upper(), default))
        except SQLAlchemyError as e:
            logger.error(f"Could not read setting {key}: {e}")
            value = default
        # Defaults are cached too so a broken backend is not hammered
        self.cache.set(key, value)
        return value

    async def allow_backorders(self) -> bool:
        return is_truthy(await self._flag(ALLOW_BACKORDERS, "false"))

    async def maintenance_mode(self) -> bool:
        return is_truthy(await self._flag(MAINTENANCE_MODE, "false"))

    async def announcement(self) -> Optional[str]:
        value = await self._flag(ANNOUNCEMENT_TEXT)
        if value is None:
            return None
        return str(value).strip() or None

    async def low_stock_threshold(self) -> int:
        value = await self._flag(LOW_STOCK_THRESHOLD, DEFAULT_LOW_STOCK_THRESHOLD)
        try:
            return int(value)
        except (TypeError, ValueError):
            return DEFAULT_LOW_STOCK_THRESHOLD

    def update_settings(self, db: Session, updates: List[dict]) -> Dict[str, Optional[str]]:
        changed = {}
        for update in updates:
            key = update["key"]
            value = update.get("value")
            row = db.query(Setting).filter(Setting.key == key).first()
            if row is None:
                row = Setting(key=key)
                db.add(row)
            row.value = None if value is None else str(value)
            if update.get("category") is not None:
                row.category = update["category"]
            if update.get("description") is not None:
                row.description = update["description"]
            changed[key] = row.value
        db.commit()
        self.cache.invalidate()
        return changed
