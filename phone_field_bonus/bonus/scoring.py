from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timezone

import structlog
from sqlalchemy import inspect
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from phone_field_bonus.bonus.types import POINTS_COUNTER_FIELD_NAME, SCORE_EVENT_DESCRIPTION
from phone_field_bonus.core.config import Settings
from phone_field_bonus.db.repo.gamification_repo import GamificationRepo
from phone_field_bonus.db.repo.user_custom_fields_repo import UserCustomFieldsRepo
from phone_field_bonus.db.repo.user_stats_repo import UserStatsRepo

logger = structlog.get_logger(__name__)

GAMIFICATION_EVENTS_TABLE = "gamification_score_events"
USER_STATS_TABLE = "user_stats"
USER_STATS_SCORE_COLUMN = "gamification_score"


def _today_utc() -> date:
    return datetime.now(timezone.utc).date()


class PluginBackend:
    name = "gamification_plugin"

    async def grant(self, session: AsyncSession, user_id: int, points: int) -> bool:
        await GamificationRepo.create_score_event(
            session,
            user_id=user_id,
            points=points,
            description=SCORE_EVENT_DESCRIPTION,
            event_date=_today_utc(),
        )
        return True


class CoreStatBackend:
    name = "core_stat"

    async def grant(self, session: AsyncSession, user_id: int, points: int) -> bool:
        updated = await UserStatsRepo.add_gamification_score(
            session,
            user_id=user_id,
            points=points,
        )
        if updated == 0:
            logger.warning("phone_bonus_user_stats_row_missing", user_id=user_id)
            return False
        return True


class FallbackCounterBackend:
    name = "fallback_counter"

    async def grant(self, session: AsyncSession, user_id: int, points: int) -> bool:
        total = await UserCustomFieldsRepo.increment_int_value(
            session,
            user_id=user_id,
            name=POINTS_COUNTER_FIELD_NAME,
            amount=points,
        )
        logger.info("phone_bonus_fallback_counter_updated", user_id=user_id, total_points=total)
        return True



@dataclass(frozen=True, slots=True)
class SchemaSnapshot:
    tables: frozenset[str]
    user_stats_columns: frozenset[str]


async def load_schema_snapshot(engine: AsyncEngine) -> SchemaSnapshot:
    def _inspect(sync_conn) -> SchemaSnapshot:
        inspector = inspect(sync_conn)
        tables = frozenset(inspector.get_table_names())
        columns: frozenset[str] = frozenset()
        if USER_STATS_TABLE in tables:
            columns = frozenset(column["name"] for column in inspector.get_columns(USER_STATS_TABLE))
        return SchemaSnapshot(tables=tables, user_stats_columns=columns)

    async with engine.connect() as conn:
        return await conn.run_sync(_inspect)


def select_scoring_backend(
    snapshot: SchemaSnapshot,
    *,
    plugin_enabled: bool,
    fallback_enabled: bool,
) -> PluginBackend | CoreStatBackend | FallbackCounterBackend | None:
    if plugin_enabled and GAMIFICATION_EVENTS_TABLE in snapshot.tables:
        return PluginBackend()
    if USER_STATS_SCORE_COLUMN in snapshot.user_stats_columns:
        return CoreStatBackend()
    if fallback_enabled:
        return FallbackCounterBackend()
    return None


async def detect_scoring_backend(
    engine: AsyncEngine,
    *,
    settings: Settings,
) -> PluginBackend | CoreStatBackend | FallbackCounterBackend | None:
    snapshot = await load_schema_snapshot(engine)
    backend = select_scoring_backend(
        snapshot,
        plugin_enabled=settings.phone_field_bonus_gamification_plugin_enabled,
        fallback_enabled=settings.phone_field_bonus_fallback_counter_enabled,
    )
    logger.info(
        "phone_bonus_scoring_backend_selected",
        backend=(backend.name if backend is not None else None),
    )
    return backend
