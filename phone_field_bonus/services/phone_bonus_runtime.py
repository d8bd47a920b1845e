from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

from phone_field_bonus.bonus.awarder import Awarder
from phone_field_bonus.bonus.guard import AwardGuard
from phone_field_bonus.bonus.ports import KeyValueStore, ScoringBackend, SettingsProvider, UserStore
from phone_field_bonus.bonus.scoring import detect_scoring_backend
from phone_field_bonus.bonus.stats import JobStats
from phone_field_bonus.core.config import Settings, get_settings
from phone_field_bonus.db.session import SessionLocal, engine
from phone_field_bonus.services.settings_provider import SiteSettingsProvider
from phone_field_bonus.services.user_store import SqlUserStore
from phone_field_bonus.storage.kv_store import open_kv_store

BackendLoader = Callable[[], Awaitable[ScoringBackend | None]]


@dataclass(slots=True)
class PhoneBonusRuntime:
    settings: Settings
    kv_store: KeyValueStore
    settings_provider: SettingsProvider
    user_store: UserStore
    stats: JobStats
    backend_loader: BackendLoader
    _guard: AwardGuard | None = field(default=None, repr=False)

    async def get_guard(self) -> AwardGuard:
        if self._guard is None:
            backend = await self.backend_loader()
            self._guard = AwardGuard(
                settings_provider=self.settings_provider,
                kv_store=self.kv_store,
                user_store=self.user_store,
                awarder=Awarder(backend),
            )
        return self._guard


@asynccontextmanager
async def phone_bonus_runtime() -> AsyncIterator[PhoneBonusRuntime]:
    settings = get_settings()

    async def _load_backend() -> ScoringBackend | None:
        return await detect_scoring_backend(engine, settings=settings)

    async with open_kv_store(settings.redis_url) as kv_store:
        yield PhoneBonusRuntime(
            settings=settings,
            kv_store=kv_store,
            settings_provider=SiteSettingsProvider(settings=settings, session_factory=SessionLocal),
            user_store=SqlUserStore(SessionLocal),
            stats=JobStats(kv_store, retention_days=settings.phone_field_bonus_stats_retention_days),
            backend_loader=_load_backend,
        )
