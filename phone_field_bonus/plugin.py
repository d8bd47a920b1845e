"""Host integration entry point.

The host calls :func:`setup_plugin` once at boot with its event bus. Every
profile related event is treated as the same "user changed" kick.
"""

from __future__ import annotations

from phone_field_bonus.core.config import get_settings
from phone_field_bonus.core.logging import configure_logging
from phone_field_bonus.events.handlers import EventBus, UserEventHandler, register_event_handlers

PLUGIN_NAME = "phone-field-bonus"
PLUGIN_VERSION = "0.1.0"


def setup_plugin(bus: EventBus) -> UserEventHandler:
    configure_logging(get_settings().log_level, component="events")
    return register_event_handlers(bus)
