from __future__ import annotations

from collections.abc import Callable
from datetime import date, datetime, timedelta, timezone

import structlog

from phone_field_bonus.bonus.keys import job_stats_key
from phone_field_bonus.bonus.ports import KeyValueStore

logger = structlog.get_logger(__name__)

OUTCOME_SUCCESS = "success"
OUTCOME_FAILURE = "failure"
OUTCOME_PROCESSED = "processed"
OUTCOME_SKIPPED = "skipped"
JOB_OUTCOMES = (OUTCOME_SUCCESS, OUTCOME_FAILURE, OUTCOME_PROCESSED, OUTCOME_SKIPPED)

DEFAULT_RETENTION_DAYS = 7
CLEANUP_LOOKBACK_DAYS = 30
CLEANUP_BATCH_SIZE = 100


def _today_utc() -> date:
    return datetime.now(timezone.utc).date()


class JobStats:
    def __init__(
        self,
        kv_store: KeyValueStore,
        *,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        today: Callable[[], date] = _today_utc,
    ) -> None:
        self._kv = kv_store
        self._retention_days = max(1, int(retention_days))
        self._today = today

    async def increment(self, outcome: str) -> None:
        if outcome not in JOB_OUTCOMES:
            logger.warning("phone_bonus_job_stats_unknown_outcome", outcome=outcome)
            return
        key = job_stats_key(outcome, self._today())
        try:
            await self._kv.incr(key)
            await self._kv.expire(key, self._retention_days * 86400)
        except Exception:
            logger.warning("phone_bonus_job_stats_increment_failed", outcome=outcome, exc_info=True)

    async def get(self, day: date | None = None) -> dict[str, object]:
        resolved_day = day or self._today()
        stats: dict[str, object] = {}
        for outcome in JOB_OUTCOMES:
            raw = await self._kv.get(job_stats_key(outcome, resolved_day))
            stats[outcome] = int(raw or 0)
        stats["date"] = resolved_day.isoformat()
        return stats

    async def get_range(self, start: date, end: date) -> list[dict[str, object]]:
        rows: list[dict[str, object]] = []
        day = start
        while day <= end:
            rows.append(await self.get(day))
            day += timedelta(days=1)
        return rows

    async def cleanup_old(self, days_to_keep: int | None = None) -> int:
        keep = self._retention_days if days_to_keep is None else max(1, int(days_to_keep))
        cutoff = self._today() - timedelta(days=keep)

        keys: list[str] = []
        day = cutoff - timedelta(days=CLEANUP_LOOKBACK_DAYS)
        while day <= cutoff:
            keys.extend(job_stats_key(outcome, day) for outcome in JOB_OUTCOMES)
            day += timedelta(days=1)

        deleted = 0
        for offset in range(0, len(keys), CLEANUP_BATCH_SIZE):
            batch = keys[offset : offset + CLEANUP_BATCH_SIZE]
            existing = await self._kv.exists(*batch)
            if existing > 0:
                deleted += await self._kv.delete(*batch)

        logger.info("phone_bonus_job_stats_cleaned", deleted_keys=deleted, cutoff=cutoff.isoformat())
        return deleted
