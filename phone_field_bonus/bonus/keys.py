from __future__ import annotations

from datetime import date

KEY_PREFIX = "phone_field_bonus"

LOCK_KEY_PATTERN = f"{KEY_PREFIX}:lock:*"
RATE_LIMIT_KEY_PATTERN = f"{KEY_PREFIX}:rate:*"
DEBOUNCE_KEY_PATTERN = f"{KEY_PREFIX}:debounce:*"
JOB_STATS_KEY_PATTERN = f"{KEY_PREFIX}:job_stats:*"


def lock_key(user_id: int) -> str:
    return f"{KEY_PREFIX}:lock:{user_id}"


def rate_limit_key(user_id: int) -> str:
    return f"{KEY_PREFIX}:rate:{user_id}"


def debounce_key(user_id: int) -> str:
    return f"{KEY_PREFIX}:debounce:{user_id}"


def job_stats_key(outcome: str, day: date) -> str:
    return f"{KEY_PREFIX}:job_stats:{outcome}:{day.strftime('%Y%m%d')}"
