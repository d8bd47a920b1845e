from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from phone_field_bonus.db.models.user_field_values import UserFieldValue


class UserFieldValuesRepo:
    @staticmethod
    async def get_values(session: AsyncSession, *, user_id: int) -> dict[str, str]:
        stmt = select(UserFieldValue.field_id, UserFieldValue.value).where(
            UserFieldValue.user_id == user_id
        )
        result = await session.execute(stmt)
        return {str(field_id): value for field_id, value in result.all() if value is not None}
