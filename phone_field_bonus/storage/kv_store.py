from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from redis.asyncio import Redis

from phone_field_bonus.core.config import get_settings

# Compare-and-delete so a lock is only released by the worker holding its token.
_RELEASE_LOCK_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("DEL", KEYS[1])
else
    return 0
end
"""

# Fixed-window counter: refuses to go past ARGV[1] and always leaves a TTL behind.
_INCR_WITHIN_LIMIT_SCRIPT = """
local current = tonumber(redis.call("GET", KEYS[1]) or "0")
if current >= tonumber(ARGV[1]) then
    if redis.call("TTL", KEYS[1]) < 0 then
        redis.call("EXPIRE", KEYS[1], ARGV[2])
    end
    return 0
end
local count = redis.call("INCR", KEYS[1])
if count == 1 or redis.call("TTL", KEYS[1]) < 0 then
    redis.call("EXPIRE", KEYS[1], ARGV[2])
end
return count
"""


class RedisKeyValueStore:
    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> RedisKeyValueStore:
        return cls(Redis.from_url(url, decode_responses=True))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def ping(self) -> bool:
        return bool(await self._client.ping())

    async def get(self, key: str) -> str | None:
        return await self._client.get(key)

    async def set(
        self,
        key: str,
        value: str,
        *,
        ex: int | None = None,
        nx: bool = False,
    ) -> bool:
        result = await self._client.set(key, value, ex=ex, nx=nx)
        return bool(result)

    async def incr(self, key: str) -> int:
        return int(await self._client.incr(key))

    async def incr_within_limit(
        self,
        key: str,
        *,
        limit: int,
        window_seconds: int,
    ) -> int | None:
        count = int(
            await self._client.eval(_INCR_WITHIN_LIMIT_SCRIPT, 1, key, int(limit), int(window_seconds))
        )
        return count if count > 0 else None

    async def expire(self, key: str, seconds: int) -> bool:
        return bool(await self._client.expire(key, seconds))

    async def ttl(self, key: str) -> int:
        return int(await self._client.ttl(key))

    async def delete(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._client.delete(*keys))

    async def exists(self, *keys: str) -> int:
        if not keys:
            return 0
        return int(await self._client.exists(*keys))

    async def scan_keys(self, pattern: str) -> list[str]:
        return [key async for key in self._client.scan_iter(match=pattern, count=500)]

    async def release_lock(self, key: str, token: str) -> bool:
        released = await self._client.eval(_RELEASE_LOCK_SCRIPT, 1, key, token)
        return int(released or 0) > 0


@asynccontextmanager
async def open_kv_store(url: str | None = None) -> AsyncIterator[RedisKeyValueStore]:
    store = RedisKeyValueStore.from_url(url or get_settings().redis_url)
    try:
        yield store
    finally:
        await store.aclose()
