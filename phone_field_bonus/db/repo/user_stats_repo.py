from __future__ import annotations

from sqlalchemy import func, update
from sqlalchemy.ext.asyncio import AsyncSession

from phone_field_bonus.db.models.user_stats import UserStat


class UserStatsRepo:
    @staticmethod
    async def add_gamification_score(session: AsyncSession, *, user_id: int, points: int) -> int:
        stmt = (
            update(UserStat)
            .where(UserStat.user_id == user_id)
            .values(gamification_score=func.coalesce(UserStat.gamification_score, 0) + int(points))
        )
        result = await session.execute(stmt)
        return result.rowcount or 0
