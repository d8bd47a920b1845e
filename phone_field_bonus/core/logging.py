import logging
import sys

import structlog

SERVICE_NAME = "phone_field_bonus"
_NOISY_LOGGERS = ("asyncio", "celery.redirected", "sqlalchemy.engine", "uvicorn.access")


def _add_service_name(logger, method_name, event_dict):
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def configure_logging(log_level: str = "INFO", *, component: str | None = None) -> None:
    """Configure JSON logging once per process and tag records with ``component``.

    Inside the host process the root handlers may already exist, so only the
    first call installs them; later calls just rebind the component.
    """
    root = logging.getLogger()
    if not getattr(root, "_phone_field_bonus_logging_initialized", False):
        logging.basicConfig(
            format="%(message)s",
            stream=sys.stdout,
            level=getattr(logging, log_level.upper(), logging.INFO),
        )
        for name in _NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

        structlog.configure(
            processors=[
                structlog.contextvars.merge_contextvars,
                _add_service_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso", utc=True),
                structlog.processors.format_exc_info,
                structlog.processors.JSONRenderer(),
            ],
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        setattr(root, "_phone_field_bonus_logging_initialized", True)

    if component is not None:
        structlog.contextvars.bind_contextvars(component=component)
