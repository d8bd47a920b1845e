from __future__ import annotations

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from phone_field_bonus.bonus.types import BonusSettings
from phone_field_bonus.core.config import Settings
from phone_field_bonus.db.repo.site_settings_repo import SiteSettingsRepo

logger = structlog.get_logger(__name__)

SITE_SETTING_ENABLED = "phone_field_bonus_enabled"
SITE_SETTING_POINTS = "phone_field_bonus_points"
SITE_SETTING_FIELD_ID = "phone_field_bonus_field_id"

_TRUE_VALUES = {"t", "true", "1", "yes", "on"}
_FALSE_VALUES = {"f", "false", "0", "no", "off"}

DEBOUNCE_MIN_SECONDS = 2
DEBOUNCE_MAX_SECONDS = 30


def _clamp_debounce_seconds(value: int) -> int:
    return max(DEBOUNCE_MIN_SECONDS, min(DEBOUNCE_MAX_SECONDS, int(value)))


def _parse_bool(raw: str | None, default: bool) -> bool:
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    return default


def _parse_int(raw: str | None, default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


def build_bonus_settings(settings: Settings, overrides: dict[str, str] | None = None) -> BonusSettings:
    values = overrides or {}
    field_id = (values.get(SITE_SETTING_FIELD_ID) or "").strip() or settings.phone_field_bonus_field_id
    return BonusSettings(
        enabled=_parse_bool(values.get(SITE_SETTING_ENABLED), settings.phone_field_bonus_enabled),
        points=_parse_int(values.get(SITE_SETTING_POINTS), settings.phone_field_bonus_points),
        field_id=field_id,
        rate_limit_window_seconds=max(1, settings.phone_field_bonus_rate_limit_window_seconds),
        rate_limit_max_checks=max(1, settings.phone_field_bonus_rate_limit_max_checks),
        lock_ttl_seconds=max(1, settings.phone_field_bonus_lock_ttl_seconds),
        debounce_seconds=_clamp_debounce_seconds(settings.phone_field_bonus_debounce_seconds),
        enqueue_delay_seconds=max(0, settings.phone_field_bonus_enqueue_delay_seconds),
    )


class SiteSettingsProvider:
    """Host site settings layered over process defaults."""

    def __init__(
        self,
        *,
        settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._settings = settings
        self._session_factory = session_factory

    async def get_bonus_settings(self) -> BonusSettings:
        async with self._session_factory() as session:
            overrides = await SiteSettingsRepo.get_values(
                session,
                names=(SITE_SETTING_ENABLED, SITE_SETTING_POINTS, SITE_SETTING_FIELD_ID),
            )
        return build_bonus_settings(self._settings, overrides)
