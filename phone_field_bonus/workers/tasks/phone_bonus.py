from __future__ import annotations

import random

import structlog
from celery import Task

from phone_field_bonus.bonus.keys import debounce_key
from phone_field_bonus.bonus.ports import KeyValueStore
from phone_field_bonus.bonus.stats import (
    OUTCOME_FAILURE,
    OUTCOME_PROCESSED,
    OUTCOME_SKIPPED,
    OUTCOME_SUCCESS,
)
from phone_field_bonus.bonus.types import STATUS_FAILED, STATUS_GRANTED, BonusSettings
from phone_field_bonus.core.config import get_settings
from phone_field_bonus.core.errors import TransientAwardError, UserNotFoundError
from phone_field_bonus.services.diagnostics import recheck_all_users
from phone_field_bonus.services.phone_bonus_runtime import phone_bonus_runtime
from phone_field_bonus.workers.asyncio_runner import run_async_job
from phone_field_bonus.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)
settings = get_settings()
TASK_MAX_RETRIES = max(0, int(settings.phone_field_bonus_task_max_retries))
TASK_RETRY_BACKOFF_MAX_SECONDS = max(1, int(settings.phone_field_bonus_task_retry_backoff_max_seconds))
RETRY_JITTER_RATIO = 0.25
TASK_QUEUE = "q_low"

RESULT_IGNORED = "ignored"
RESULT_DISCARDED = "discarded"


def _retry_backoff_seconds(
    *,
    next_retry_attempt: int,
    backoff_max_seconds: int,
) -> int:
    safe_retry_attempt = max(1, int(next_retry_attempt))
    safe_backoff_max_seconds = max(1, int(backoff_max_seconds))

    base_delay = min(
        safe_backoff_max_seconds,
        2 ** (safe_retry_attempt - 1),
    )
    max_jitter = max(0, int(base_delay * RETRY_JITTER_RATIO))
    jitter = random.randint(0, max_jitter) if max_jitter > 0 else 0
    return min(safe_backoff_max_seconds, base_delay + jitter)


def _parse_user_id(raw_user_id: object) -> int | None:
    if isinstance(raw_user_id, bool):
        return None
    try:
        user_id = int(raw_user_id)
    except (TypeError, ValueError):
        return None
    return user_id if user_id > 0 else None


def _dispatch_check(user_id: int, *, countdown: int) -> None:
    check_phone_bonus.apply_async(args=[user_id], countdown=countdown, queue=TASK_QUEUE)


async def enqueue_phone_bonus_check(
    kv_store: KeyValueStore,
    bonus_settings: BonusSettings,
    *,
    user_id: int,
) -> bool:
    if not bonus_settings.enabled:
        return False

    marker = debounce_key(user_id)
    marked = await kv_store.set(marker, "1", ex=bonus_settings.debounce_seconds, nx=True)
    if not marked:
        logger.debug("phone_bonus_enqueue_debounced", user_id=user_id)
        return False

    # The job must run after the debounce window closes so it reads the last suppressed edit.
    countdown = max(bonus_settings.enqueue_delay_seconds, bonus_settings.debounce_seconds)
    try:
        _dispatch_check(user_id, countdown=countdown)
    except Exception:
        await kv_store.delete(marker)
        logger.exception("phone_bonus_enqueue_failed", user_id=user_id)
        raise

    logger.info("phone_bonus_check_enqueued", user_id=user_id, countdown_seconds=countdown)
    return True


async def run_phone_bonus_check_async(user_id: int) -> str:
    async with phone_bonus_runtime() as runtime:
        guard = await runtime.get_guard()
        try:
            result = await guard.check_and_award(user_id)
        except UserNotFoundError:
            logger.warning("phone_bonus_job_user_not_found", user_id=user_id)
            await runtime.stats.increment(OUTCOME_SKIPPED)
            return RESULT_DISCARDED
        except Exception:
            await runtime.stats.increment(OUTCOME_FAILURE)
            raise

        if result.status == STATUS_GRANTED:
            await runtime.stats.increment(OUTCOME_PROCESSED)
            await runtime.stats.increment(OUTCOME_SUCCESS)
            logger.info("phone_bonus_job_processed", user_id=user_id, backend=result.backend)
        elif result.status == STATUS_FAILED:
            await runtime.stats.increment(OUTCOME_FAILURE)
            raise TransientAwardError(f"award failed for user {user_id}")
        else:
            await runtime.stats.increment(OUTCOME_SKIPPED)
            logger.debug("phone_bonus_job_skipped", user_id=user_id, status=result.status)
        return result.status.lower()


async def run_recheck_unawarded_users_async(
    *,
    batch_size: int | None = None,
    batch_delay_seconds: float | None = None,
) -> dict[str, object]:
    async with phone_bonus_runtime() as runtime:
        return await recheck_all_users(
            runtime,
            batch_size=batch_size,
            batch_delay_seconds=batch_delay_seconds,
        )


@celery_app.task(
    name="phone_field_bonus.workers.tasks.phone_bonus.check_phone_bonus",
    bind=True,
    max_retries=TASK_MAX_RETRIES,
    acks_late=True,
    reject_on_worker_lost=True,
)
def check_phone_bonus(self: Task, user_id: int | None = None) -> str:
    resolved_user_id = _parse_user_id(user_id)
    if resolved_user_id is None:
        logger.warning("phone_bonus_job_invalid_user_id", raw_user_id=user_id)
        return RESULT_IGNORED

    task_id = str(self.request.id) if self.request.id is not None else None
    try:
        return run_async_job(
            run_phone_bonus_check_async(resolved_user_id),
            job_name="check_phone_bonus",
        )
    except Exception as exc:
        current_retries = max(0, int(getattr(self.request, "retries", 0) or 0))
        if current_retries >= TASK_MAX_RETRIES:
            logger.exception(
                "phone_bonus_job_failed_final",
                user_id=resolved_user_id,
                task_id=task_id,
                retries=current_retries,
                max_retries=TASK_MAX_RETRIES,
            )
            raise

        next_retry_attempt = current_retries + 1
        retry_in_seconds = _retry_backoff_seconds(
            next_retry_attempt=next_retry_attempt,
            backoff_max_seconds=TASK_RETRY_BACKOFF_MAX_SECONDS,
        )
        logger.warning(
            "phone_bonus_job_retry_scheduled",
            user_id=resolved_user_id,
            task_id=task_id,
            retry_attempt=next_retry_attempt,
            retry_in_seconds=retry_in_seconds,
            max_retries=TASK_MAX_RETRIES,
            error=str(exc),
        )
        raise self.retry(
            exc=exc,
            countdown=retry_in_seconds,
            max_retries=TASK_MAX_RETRIES,
        )


@celery_app.task(name="phone_field_bonus.workers.tasks.phone_bonus.recheck_unawarded_users")
def recheck_unawarded_users(
    batch_size: int | None = None,
    batch_delay_seconds: float | None = None,
) -> dict[str, object]:
    return run_async_job(
        run_recheck_unawarded_users_async(
            batch_size=batch_size,
            batch_delay_seconds=batch_delay_seconds,
        ),
        job_name="recheck_unawarded_users",
    )
