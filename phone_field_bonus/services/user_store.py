from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from phone_field_bonus.bonus.ports import AwardGrant
from phone_field_bonus.bonus.types import AWARDED_FIELD_NAME, AWARDED_FIELD_VALUE, HostUser
from phone_field_bonus.db.repo.user_custom_fields_repo import UserCustomFieldsRepo
from phone_field_bonus.db.repo.user_field_values_repo import UserFieldValuesRepo
from phone_field_bonus.db.repo.users_repo import UsersRepo


class SqlUserStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_user(self, user_id: int) -> HostUser | None:
        async with self._session_factory() as session:
            user = await UsersRepo.get_by_id(session, user_id)
            if user is None:
                return None
            user_fields = await UserFieldValuesRepo.get_values(session, user_id=user_id)
            custom_fields = await UserCustomFieldsRepo.get_values(session, user_id=user_id)
        return HostUser(id=user.id, user_fields=user_fields, custom_fields=custom_fields)

    async def is_awarded(self, user_id: int) -> bool:
        async with self._session_factory() as session:
            value = await UserCustomFieldsRepo.get_value(
                session,
                user_id=user_id,
                name=AWARDED_FIELD_NAME,
            )
        return value == AWARDED_FIELD_VALUE

    async def record_award(self, user_id: int, grant: AwardGrant) -> bool:
        async with self._session_factory.begin() as session:
            if not await grant(session):
                return False
            await UserCustomFieldsRepo.upsert_value(
                session,
                user_id=user_id,
                name=AWARDED_FIELD_NAME,
                value=AWARDED_FIELD_VALUE,
            )
        return True

    async def list_unawarded_user_ids(
        self,
        *,
        after_user_id: int | None,
        limit: int,
    ) -> list[int]:
        async with self._session_factory() as session:
            return await UsersRepo.list_ids_without_custom_field_value(
                session,
                field_name=AWARDED_FIELD_NAME,
                field_value=AWARDED_FIELD_VALUE,
                after_user_id=after_user_id,
                limit=limit,
            )
