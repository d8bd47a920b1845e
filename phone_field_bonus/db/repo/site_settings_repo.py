from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phone_field_bonus.db.models.site_settings import SiteSetting


class SiteSettingsRepo:
    @staticmethod
    async def get_values(session: AsyncSession, *, names: Sequence[str]) -> dict[str, str]:
        if not names:
            return {}
        stmt = select(SiteSetting.name, SiteSetting.value).where(SiteSetting.name.in_(tuple(names)))
        result = await session.execute(stmt)
        return {str(name): value for name, value in result.all() if value is not None}
