"""Collaborator interfaces the award flow depends on.

Production adapters live in ``phone_field_bonus.storage`` and
``phone_field_bonus.services``; tests substitute in-memory fakes.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Protocol

from sqlalchemy.ext.asyncio import AsyncSession

from phone_field_bonus.bonus.types import BonusSettings, HostUser


class KeyValueStore(Protocol):
    async def get(self, key: str) -> str | None: ...

    async def set(
        self,
        key: str,
        value: str,
        *,
        ex: int | None = None,
        nx: bool = False,
    ) -> bool: ...

    async def incr(self, key: str) -> int: ...

    async def incr_within_limit(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
    ) -> int | None: ...

    async def expire(self, key: str, seconds: int) -> bool: ...

    async def ttl(self, key: str) -> int: ...

    async def delete(self, *keys: str) -> int: ...

    async def exists(self, *keys: str) -> int: ...

    async def scan_keys(self, pattern: str) -> list[str]: ...

    async def release_lock(self, key: str, token: str) -> bool: ...


# Writes the points inside the caller's transaction; False means nothing was written.
AwardGrant = Callable[[AsyncSession], Awaitable[bool]]


class SettingsProvider(Protocol):
    async def get_bonus_settings(self) -> BonusSettings: ...


class UserStore(Protocol):
    async def get_user(self, user_id: int) -> HostUser | None: ...

    async def is_awarded(self, user_id: int) -> bool: ...

    async def record_award(self, user_id: int, grant: AwardGrant) -> bool: ...

    async def list_unawarded_user_ids(
        self,
        *,
        after_user_id: int | None,
        limit: int,
    ) -> list[int]: ...


class ScoringBackend(Protocol):
    name: str

    async def grant(self, session: AsyncSession, user_id: int, points: int) -> bool: ...
