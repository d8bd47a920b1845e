from __future__ import annotations

from types import SimpleNamespace

import pytest

from phone_field_bonus.bonus import scoring
from phone_field_bonus.bonus.scoring import (
    CoreStatBackend,
    FallbackCounterBackend,
    PluginBackend,
    SchemaSnapshot,
    select_scoring_backend,
)


def _snapshot(tables=(), user_stats_columns=()) -> SchemaSnapshot:
    return SchemaSnapshot(tables=frozenset(tables), user_stats_columns=frozenset(user_stats_columns))


def test_select_prefers_gamification_plugin() -> None:
    backend = select_scoring_backend(
        _snapshot(
            tables=("gamification_score_events", "user_stats"),
            user_stats_columns=("user_id", "gamification_score"),
        ),
        plugin_enabled=True,
        fallback_enabled=True,
    )

    assert isinstance(backend, PluginBackend)


def test_select_uses_core_stat_when_plugin_disabled() -> None:
    backend = select_scoring_backend(
        _snapshot(
            tables=("gamification_score_events", "user_stats"),
            user_stats_columns=("user_id", "gamification_score"),
        ),
        plugin_enabled=False,
        fallback_enabled=True,
    )

    assert isinstance(backend, CoreStatBackend)


def test_select_falls_back_to_counter_then_none() -> None:
    snapshot = _snapshot(tables=("user_stats",), user_stats_columns=("user_id",))

    fallback = select_scoring_backend(
        snapshot,
        plugin_enabled=True,
        fallback_enabled=True,
    )
    missing = select_scoring_backend(
        snapshot,
        plugin_enabled=True,
        fallback_enabled=False,
    )

    assert isinstance(fallback, FallbackCounterBackend)
    assert missing is None


@pytest.mark.asyncio
async def test_plugin_backend_writes_score_event_in_callers_session(monkeypatch) -> None:
    captured: dict[str, object] = {}
    session = object()

    async def _fake_create_score_event(session, **kwargs):
        captured.update(kwargs, session=session)
        return SimpleNamespace(id=1)

    monkeypatch.setattr(scoring.GamificationRepo, "create_score_event", _fake_create_score_event)

    assert await PluginBackend().grant(session, 42, 10) is True
    assert captured["session"] is session
    assert captured["user_id"] == 42
    assert captured["points"] == 10
    assert captured["description"] == "phone_field_completed"


@pytest.mark.asyncio
async def test_core_stat_backend_reports_missing_stats_row(monkeypatch) -> None:
    async def _fake_add_score(session, *, user_id: int, points: int) -> int:
        del session, user_id, points
        return 0

    monkeypatch.setattr(scoring.UserStatsRepo, "add_gamification_score", _fake_add_score)

    assert await CoreStatBackend().grant(object(), 42, 10) is False


@pytest.mark.asyncio
async def test_fallback_backend_increments_points_counter(monkeypatch) -> None:
    captured: dict[str, object] = {}

    async def _fake_increment(session, *, user_id: int, name: str, amount: int) -> int:
        captured.update({"user_id": user_id, "name": name, "amount": amount})
        return 30

    monkeypatch.setattr(scoring.UserCustomFieldsRepo, "increment_int_value", _fake_increment)

    assert await FallbackCounterBackend().grant(object(), 42, 10) is True
    assert captured == {"user_id": 42, "name": "phone_field_bonus_points", "amount": 10}


@pytest.mark.asyncio
async def test_detect_uses_settings_toggles(monkeypatch) -> None:
    async def _fake_snapshot(engine) -> SchemaSnapshot:
        del engine
        return _snapshot(tables=("gamification_score_events",))

    monkeypatch.setattr(scoring, "load_schema_snapshot", _fake_snapshot)

    backend = await scoring.detect_scoring_backend(
        object(),
        settings=SimpleNamespace(
            phone_field_bonus_gamification_plugin_enabled=False,
            phone_field_bonus_fallback_counter_enabled=False,
        ),
    )

    assert backend is None
