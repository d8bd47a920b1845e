from __future__ import annotations

from time import perf_counter

import structlog

from sqlalchemy.ext.asyncio import AsyncSession

from phone_field_bonus.bonus.ports import ScoringBackend, UserStore

logger = structlog.get_logger(__name__)


class Awarder:
    def __init__(self, backend: ScoringBackend | None) -> None:
        self._backend = backend

    @property
    def available(self) -> bool:
        return self._backend is not None

    @property
    def backend_name(self) -> str | None:
        return self._backend.name if self._backend is not None else None

    async def award(self, user_id: int, points: int, *, user_store: UserStore) -> bool:
        """Grant ``points`` and write the Award Record in one transaction.

        Never raises: a failed grant or record write rolls both back and
        returns False, so a retry cannot double-award.
        """
        backend = self._backend
        if backend is None:
            logger.warning("phone_bonus_backend_unavailable", user_id=user_id)
            return False

        async def _grant(session: AsyncSession) -> bool:
            return await backend.grant(session, user_id, points)

        started_at = perf_counter()
        try:
            granted = await user_store.record_award(user_id, _grant)
        except Exception:
            logger.exception(
                "phone_bonus_award_failed",
                user_id=user_id,
                points=points,
                backend=self._backend.name,
                duration_ms=int((perf_counter() - started_at) * 1000),
            )
            return False

        duration_ms = int((perf_counter() - started_at) * 1000)
        if not granted:
            logger.warning(
                "phone_bonus_award_rejected",
                user_id=user_id,
                points=points,
                backend=self._backend.name,
                duration_ms=duration_ms,
            )
            return False

        logger.info(
            "phone_bonus_points_awarded",
            user_id=user_id,
            points=points,
            backend=self._backend.name,
            duration_ms=duration_ms,
        )
        return True
