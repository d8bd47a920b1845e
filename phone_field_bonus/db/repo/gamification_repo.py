from __future__ import annotations

from datetime import date

from sqlalchemy.ext.asyncio import AsyncSession

from phone_field_bonus.db.models.gamification_score_events import GamificationScoreEvent


class GamificationRepo:
    @staticmethod
    async def create_score_event(
        session: AsyncSession,
        *,
        user_id: int,
        points: int,
        description: str,
        event_date: date,
    ) -> GamificationScoreEvent:
        event = GamificationScoreEvent(
            user_id=user_id,
            points=points,
            description=description,
            date=event_date,
        )
        session.add(event)
        await session.flush()
        return event
