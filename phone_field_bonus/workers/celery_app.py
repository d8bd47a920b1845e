from celery import Celery
from celery.signals import worker_process_init

from phone_field_bonus.core.config import get_settings
from phone_field_bonus.core.logging import configure_logging

settings = get_settings()

celery_app = Celery(
    "phone_field_bonus",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "phone_field_bonus.workers.tasks.phone_bonus",
        "phone_field_bonus.workers.tasks.phone_bonus_maintenance",
    ],
)

celery_app.conf.update(
    task_default_queue="q_normal",
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
)


@worker_process_init.connect
def _configure_worker_logging(**_kwargs) -> None:
    configure_logging(settings.log_level, component="worker")


@celery_app.task(name="phone_field_bonus.workers.celery_app.ping")
def ping() -> str:
    return "pong"
