from __future__ import annotations

from datetime import date, timedelta

import pytest

from phone_field_bonus.bonus.keys import job_stats_key
from phone_field_bonus.bonus.stats import JobStats
from tests.bonus.phone_bonus_fixtures import FakeKeyValueStore

TODAY = date(2026, 10, 18)


@pytest.mark.asyncio
async def test_increment_counts_per_outcome_with_retention_ttl() -> None:
    kv = FakeKeyValueStore()
    stats = JobStats(kv, retention_days=7, today=lambda: TODAY)

    await stats.increment("processed")
    await stats.increment("processed")
    await stats.increment("skipped")

    snapshot = await stats.get(TODAY)
    assert snapshot == {
        "success": 0,
        "failure": 0,
        "processed": 2,
        "skipped": 1,
        "date": "2026-10-18",
    }
    assert await kv.ttl(job_stats_key("processed", TODAY)) == 7 * 86400


@pytest.mark.asyncio
async def test_increment_swallows_store_failures() -> None:
    kv = FakeKeyValueStore()
    kv.fail_on.add("incr")
    stats = JobStats(kv, today=lambda: TODAY)

    await stats.increment("success")

    assert kv.writes == []


@pytest.mark.asyncio
async def test_increment_ignores_unknown_outcome() -> None:
    kv = FakeKeyValueStore()
    stats = JobStats(kv, today=lambda: TODAY)

    await stats.increment("exploded")

    assert kv.writes == []


@pytest.mark.asyncio
async def test_get_range_returns_one_row_per_day() -> None:
    stats = JobStats(FakeKeyValueStore(), today=lambda: TODAY)

    rows = await stats.get_range(TODAY - timedelta(days=2), TODAY)

    assert [row["date"] for row in rows] == ["2026-10-16", "2026-10-17", "2026-10-18"]


@pytest.mark.asyncio
async def test_cleanup_old_deletes_only_days_past_retention() -> None:
    kv = FakeKeyValueStore()
    stats = JobStats(kv, retention_days=7, today=lambda: TODAY)
    old_day = TODAY - timedelta(days=10)
    recent_day = TODAY - timedelta(days=3)
    await kv.set(job_stats_key("processed", old_day), "4")
    await kv.set(job_stats_key("failure", old_day), "1")
    await kv.set(job_stats_key("processed", recent_day), "2")

    deleted = await stats.cleanup_old()

    assert deleted == 2
    assert await kv.get(job_stats_key("processed", recent_day)) == "2"
    assert await kv.get(job_stats_key("processed", old_day)) is None
