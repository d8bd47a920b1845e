from __future__ import annotations

from sqlalchemy import and_, select
from sqlalchemy.ext.asyncio import AsyncSession

from phone_field_bonus.db.models.user_custom_fields import UserCustomField
from phone_field_bonus.db.models.users import User


class UsersRepo:
    @staticmethod
    async def get_by_id(session: AsyncSession, user_id: int) -> User | None:
        return await session.get(User, user_id)

    @staticmethod
    async def list_ids_without_custom_field_value(
        session: AsyncSession,
        *,
        field_name: str,
        field_value: str,
        after_user_id: int | None,
        limit: int,
    ) -> list[int]:
        resolved_limit = max(1, min(1000, int(limit)))
        stmt = (
            select(User.id)
            .outerjoin(
                UserCustomField,
                and_(
                    UserCustomField.user_id == User.id,
                    UserCustomField.name == field_name,
                ),
            )
            .where(
                (UserCustomField.value.is_(None)) | (UserCustomField.value != field_value),
            )
            .order_by(User.id.asc())
            .limit(resolved_limit)
        )
        if after_user_id is not None:
            stmt = stmt.where(User.id > after_user_id)

        result = await session.execute(stmt)
        return [int(user_id) for user_id in result.scalars().all()]
