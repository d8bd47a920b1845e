"""One-time phone bonus award guard.

The durable Award Record (``phone_field_bonus_awarded`` custom field) is the
only source of truth for "already awarded". The rate-limit counter and the
processing lock live in the shared key-value store and only bound how often
and how concurrently the slow path runs.
"""

from __future__ import annotations

import uuid

import structlog

from phone_field_bonus.bonus.awarder import Awarder
from phone_field_bonus.bonus.extractor import extract_phone_value
from phone_field_bonus.bonus.keys import lock_key, rate_limit_key
from phone_field_bonus.bonus.ports import KeyValueStore, SettingsProvider, UserStore
from phone_field_bonus.bonus.types import (
    STATUS_ALREADY_AWARDED,
    STATUS_BACKEND_UNAVAILABLE,
    STATUS_DISABLED,
    STATUS_FAILED,
    STATUS_GRANTED,
    STATUS_INELIGIBLE,
    STATUS_INVALID_INPUT,
    STATUS_LOCKED,
    STATUS_RATE_LIMITED,
    BonusSettings,
    GuardResult,
    HostUser,
)
from phone_field_bonus.bonus.validator import is_valid_phone
from phone_field_bonus.core.errors import UserNotFoundError

logger = structlog.get_logger(__name__)


def _is_valid_user_id(user_id: object) -> bool:
    return isinstance(user_id, int) and not isinstance(user_id, bool) and user_id > 0


class AwardGuard:
    def __init__(
        self,
        *,
        settings_provider: SettingsProvider,
        kv_store: KeyValueStore,
        user_store: UserStore,
        awarder: Awarder,
    ) -> None:
        self._settings_provider = settings_provider
        self._kv = kv_store
        self._users = user_store
        self._awarder = awarder

    @property
    def backend_name(self) -> str | None:
        return self._awarder.backend_name

    async def check_and_award(self, user_id: int | None) -> GuardResult:
        settings = await self._settings_provider.get_bonus_settings()
        if not settings.enabled:
            return GuardResult(status=STATUS_DISABLED, user_id=user_id)
        if not _is_valid_user_id(user_id):
            return GuardResult(status=STATUS_INVALID_INPUT, user_id=None)

        user = await self._users.get_user(user_id)
        if user is None:
            logger.warning("phone_bonus_user_not_found", user_id=user_id)
            raise UserNotFoundError(user_id)
        if user.bonus_awarded:
            return GuardResult(status=STATUS_ALREADY_AWARDED, user_id=user_id)

        if not await self._consume_rate_limit(user_id, settings=settings):
            logger.info("phone_bonus_rate_limited", user_id=user_id)
            return GuardResult(status=STATUS_RATE_LIMITED, user_id=user_id)

        if not self._has_valid_phone(user, settings=settings):
            return GuardResult(status=STATUS_INELIGIBLE, user_id=user_id)

        if not self._awarder.available:
            logger.warning("phone_bonus_skipped_no_backend", user_id=user_id)
            return GuardResult(status=STATUS_BACKEND_UNAVAILABLE, user_id=user_id)

        key = lock_key(user_id)
        token = uuid.uuid4().hex
        acquired = await self._kv.set(key, token, ex=settings.lock_ttl_seconds, nx=True)
        if not acquired:
            logger.info("phone_bonus_lock_busy", user_id=user_id)
            return GuardResult(status=STATUS_LOCKED, user_id=user_id)

        try:
            return await self._award_locked(user_id, settings=settings)
        finally:
            await self._kv.release_lock(key, token)

    async def _award_locked(self, user_id: int, *, settings: BonusSettings) -> GuardResult:
        # The snapshot loaded above may predate another worker's write.
        if await self._users.is_awarded(user_id):
            return GuardResult(status=STATUS_ALREADY_AWARDED, user_id=user_id)

        # Points and the Award Record commit together or not at all.
        granted = await self._awarder.award(user_id, settings.points, user_store=self._users)
        if not granted:
            return GuardResult(
                status=STATUS_FAILED,
                user_id=user_id,
                backend=self._awarder.backend_name,
            )

        logger.info(
            "phone_bonus_awarded",
            user_id=user_id,
            points=settings.points,
            backend=self._awarder.backend_name,
        )
        return GuardResult(
            status=STATUS_GRANTED,
            user_id=user_id,
            backend=self._awarder.backend_name,
        )

    async def _consume_rate_limit(self, user_id: int, *, settings: BonusSettings) -> bool:
        key = rate_limit_key(user_id)
        cap = max(1, int(settings.rate_limit_max_checks))
        window = max(1, int(settings.rate_limit_window_seconds))

        count = await self._kv.incr_within_limit(key, limit=cap, window_seconds=window)
        return count is not None

    @staticmethod
    def _has_valid_phone(user: HostUser, *, settings: BonusSettings) -> bool:
        try:
            return is_valid_phone(extract_phone_value(user, settings.field_id))
        except Exception:
            logger.warning("phone_bonus_phone_check_failed", user_id=user.id, exc_info=True)
            return False
