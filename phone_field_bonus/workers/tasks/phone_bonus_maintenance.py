from __future__ import annotations

import structlog
from celery.schedules import crontab

from phone_field_bonus.services.phone_bonus_runtime import phone_bonus_runtime
from phone_field_bonus.workers.asyncio_runner import run_async_job
from phone_field_bonus.workers.celery_app import celery_app

logger = structlog.get_logger(__name__)


async def run_job_stats_cleanup_async(days_to_keep: int | None = None) -> dict[str, int]:
    async with phone_bonus_runtime() as runtime:
        deleted = await runtime.stats.cleanup_old(days_to_keep)

    result = {"deleted_keys": deleted}
    logger.info("phone_bonus_job_stats_cleanup_finished", **result)
    return result


@celery_app.task(name="phone_field_bonus.workers.tasks.phone_bonus_maintenance.cleanup_job_stats")
def cleanup_job_stats(days_to_keep: int | None = None) -> dict[str, int]:
    return run_async_job(run_job_stats_cleanup_async(days_to_keep), job_name="cleanup_job_stats")


celery_app.conf.beat_schedule = celery_app.conf.beat_schedule or {}
celery_app.conf.beat_schedule.update(
    {
        "phone-bonus-job-stats-cleanup-daily": {
            "task": "phone_field_bonus.workers.tasks.phone_bonus_maintenance.cleanup_job_stats",
            "schedule": crontab(hour=3, minute=15),
            "options": {"queue": "q_low"},
        },
    }
)
