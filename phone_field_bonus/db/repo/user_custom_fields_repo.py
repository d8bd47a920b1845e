from __future__ import annotations

from sqlalchemy import Integer, Text, case, cast, func, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.ext.asyncio import AsyncSession

from phone_field_bonus.db.models.user_custom_fields import UserCustomField

INT_VALUE_PATTERN = r"^-?[0-9]{1,9}$"


class UserCustomFieldsRepo:
    @staticmethod
    async def get_values(session: AsyncSession, *, user_id: int) -> dict[str, str]:
        stmt = select(UserCustomField.name, UserCustomField.value).where(
            UserCustomField.user_id == user_id
        )
        result = await session.execute(stmt)
        return {str(name): value for name, value in result.all() if value is not None}

    @staticmethod
    async def get_value(session: AsyncSession, *, user_id: int, name: str) -> str | None:
        stmt = select(UserCustomField.value).where(
            UserCustomField.user_id == user_id,
            UserCustomField.name == name,
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    @staticmethod
    async def upsert_value(
        session: AsyncSession,
        *,
        user_id: int,
        name: str,
        value: str,
    ) -> None:
        stmt = postgresql_insert(UserCustomField).values(
            user_id=user_id,
            name=name,
            value=value,
            created_at=func.now(),
            updated_at=func.now(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserCustomField.user_id, UserCustomField.name],
            set_={"value": value, "updated_at": func.now()},
        )
        await session.execute(stmt)

    @staticmethod
    async def increment_int_value(
        session: AsyncSession,
        *,
        user_id: int,
        name: str,
        amount: int,
    ) -> int:
        stmt = postgresql_insert(UserCustomField).values(
            user_id=user_id,
            name=name,
            value=str(int(amount)),
            created_at=func.now(),
            updated_at=func.now(),
        )
        # Non-numeric text left in the field by hand restarts the counter at zero.
        current = case(
            (UserCustomField.value.regexp_match(INT_VALUE_PATTERN), cast(UserCustomField.value, Integer)),
            else_=0,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserCustomField.user_id, UserCustomField.name],
            set_={
                "value": cast(current + int(amount), Text),
                "updated_at": func.now(),
            },
        ).returning(UserCustomField.value)
        result = await session.execute(stmt)
        return int(result.scalar_one())
