from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable
from typing import TypeVar

import structlog

from phone_field_bonus.db.session import dispose_engine

T = TypeVar("T")
logger = structlog.get_logger(__name__)


async def _run_with_fresh_db_pool(awaitable: Awaitable[T], *, job_name: str) -> T:
    # Each asyncio.run() gets a new loop; pooled asyncpg connections are bound to the old one.
    await dispose_engine()
    started_at = time.perf_counter()
    with structlog.contextvars.bound_contextvars(job=job_name):
        try:
            return await awaitable
        finally:
            logger.debug(
                "phone_bonus_async_job_finished",
                duration_ms=int((time.perf_counter() - started_at) * 1000),
            )
            await dispose_engine()


def run_async_job(awaitable: Awaitable[T], *, job_name: str = "phone_bonus_job") -> T:
    return asyncio.run(_run_with_fresh_db_pool(awaitable, job_name=job_name))
