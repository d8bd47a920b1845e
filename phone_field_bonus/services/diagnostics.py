from __future__ import annotations

import asyncio
from collections import Counter

import structlog

from phone_field_bonus.bonus.extractor import extract_phone_value
from phone_field_bonus.bonus.keys import (
    DEBOUNCE_KEY_PATTERN,
    JOB_STATS_KEY_PATTERN,
    LOCK_KEY_PATTERN,
    RATE_LIMIT_KEY_PATTERN,
    lock_key,
    rate_limit_key,
)
from phone_field_bonus.bonus.types import GuardResult
from phone_field_bonus.bonus.validator import is_valid_phone, phone_digits
from phone_field_bonus.core.errors import UserNotFoundError
from phone_field_bonus.services.phone_bonus_runtime import PhoneBonusRuntime

logger = structlog.get_logger(__name__)

STATUS_NOT_FOUND = "NOT_FOUND"


def _clamp_batch_size(value: int) -> int:
    return max(1, min(1000, int(value)))


def _clamp_batch_delay_seconds(value: float) -> float:
    return max(0.0, min(60.0, float(value)))


async def recheck_user(runtime: PhoneBonusRuntime, *, user_id: int) -> GuardResult:
    guard = await runtime.get_guard()
    return await guard.check_and_award(user_id)


async def recheck_all_users(
    runtime: PhoneBonusRuntime,
    *,
    batch_size: int | None = None,
    batch_delay_seconds: float | None = None,
    max_batches: int | None = None,
) -> dict[str, object]:
    resolved_batch_size = _clamp_batch_size(
        batch_size if batch_size is not None else runtime.settings.phone_field_bonus_recheck_batch_size
    )
    resolved_delay = _clamp_batch_delay_seconds(
        batch_delay_seconds
        if batch_delay_seconds is not None
        else runtime.settings.phone_field_bonus_recheck_batch_delay_seconds
    )
    guard = await runtime.get_guard()

    outcomes: Counter[str] = Counter()
    batches = 0
    after_user_id: int | None = None
    while max_batches is None or batches < max_batches:
        user_ids = await runtime.user_store.list_unawarded_user_ids(
            after_user_id=after_user_id,
            limit=resolved_batch_size,
        )
        if not user_ids:
            break
        batches += 1

        for user_id in user_ids:
            try:
                result = await guard.check_and_award(user_id)
            except UserNotFoundError:
                outcomes[STATUS_NOT_FOUND] += 1
                continue
            outcomes[result.status] += 1

        after_user_id = user_ids[-1]
        if len(user_ids) < resolved_batch_size:
            break
        if resolved_delay > 0:
            await asyncio.sleep(resolved_delay)

    summary: dict[str, object] = {
        "batches": batches,
        "users_checked": sum(outcomes.values()),
        "outcomes": dict(outcomes),
    }
    logger.info("phone_bonus_recheck_all_finished", **summary)
    return summary


async def rate_limit_state(runtime: PhoneBonusRuntime, *, user_id: int) -> dict[str, object]:
    bonus_settings = await runtime.settings_provider.get_bonus_settings()
    key = rate_limit_key(user_id)
    count = int(await runtime.kv_store.get(key) or 0)
    ttl = await runtime.kv_store.ttl(key) if count > 0 else None
    return {
        "user_id": user_id,
        "count": count,
        "max_checks": bonus_settings.rate_limit_max_checks,
        "window_seconds": bonus_settings.rate_limit_window_seconds,
        "ttl_seconds": ttl,
        "limited": count >= bonus_settings.rate_limit_max_checks,
    }


async def clear_rate_limits(runtime: PhoneBonusRuntime, *, user_id: int | None = None) -> int:
    if user_id is not None:
        keys = [rate_limit_key(user_id)]
    else:
        keys = await runtime.kv_store.scan_keys(RATE_LIMIT_KEY_PATTERN)
    deleted = await runtime.kv_store.delete(*keys) if keys else 0
    logger.info("phone_bonus_rate_limits_cleared", user_id=user_id, deleted_keys=deleted)
    return deleted


async def health_summary(runtime: PhoneBonusRuntime) -> dict[str, object]:
    bonus_settings = await runtime.settings_provider.get_bonus_settings()
    guard = await runtime.get_guard()
    kv = runtime.kv_store
    return {
        "enabled": bonus_settings.enabled,
        "points": bonus_settings.points,
        "field_id": bonus_settings.field_id,
        "backend": guard.backend_name,
        "active_locks": len(await kv.scan_keys(LOCK_KEY_PATTERN)),
        "active_rate_limits": len(await kv.scan_keys(RATE_LIMIT_KEY_PATTERN)),
        "pending_debounce_markers": len(await kv.scan_keys(DEBOUNCE_KEY_PATTERN)),
        "job_stats_keys": len(await kv.scan_keys(JOB_STATS_KEY_PATTERN)),
    }


async def diagnose_user(runtime: PhoneBonusRuntime, *, user_id: int) -> dict[str, object]:
    user = await runtime.user_store.get_user(user_id)
    if user is None:
        raise UserNotFoundError(user_id)

    bonus_settings = await runtime.settings_provider.get_bonus_settings()
    phone_value = extract_phone_value(user, bonus_settings.field_id)
    return {
        "user_id": user_id,
        "field_id": bonus_settings.field_id,
        "phone_value_present": phone_value is not None,
        "phone_digit_count": len(phone_digits(phone_value)),
        "phone_valid": is_valid_phone(phone_value),
        "awarded": await runtime.user_store.is_awarded(user_id),
        "lock_active": await runtime.kv_store.exists(lock_key(user_id)) > 0,
        "rate_limit": await rate_limit_state(runtime, user_id=user_id),
    }
