from __future__ import annotations

from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager
from enum import Enum
from typing import Protocol

import structlog

from phone_field_bonus.bonus.types import GuardResult
from phone_field_bonus.core.errors import UserNotFoundError
from phone_field_bonus.services.phone_bonus_runtime import PhoneBonusRuntime, phone_bonus_runtime
from phone_field_bonus.workers.tasks.phone_bonus import enqueue_phone_bonus_check

logger = structlog.get_logger(__name__)

UserEventHandler = Callable[[object], Awaitable[None]]
RuntimeFactory = Callable[[], AbstractAsyncContextManager[PhoneBonusRuntime]]


class UserEvent(str, Enum):
    USER_UPDATED = "user_updated"
    USER_CUSTOM_FIELDS_UPDATED = "user_custom_fields_updated"
    USER_PROFILE_UPDATED = "user_profile_updated"
    USER_FIELD_UPDATED = "user_field_updated"


class EventBus(Protocol):
    def on(self, event_name: str, handler: UserEventHandler) -> None: ...


def resolve_user_id(user: object) -> int | None:
    if user is None or isinstance(user, bool):
        return None
    raw_id = user if isinstance(user, int) else getattr(user, "id", None)
    if isinstance(raw_id, bool) or not isinstance(raw_id, int):
        return None
    return raw_id if raw_id > 0 else None


async def handle_user_changed(
    user: object,
    *,
    runtime_factory: RuntimeFactory = phone_bonus_runtime,
) -> GuardResult | bool | None:
    """Run (or enqueue) the bonus check for a changed user.

    Called from inside the host's profile save, so nothing raised here may
    escape: every failure is logged and the handler returns None.
    """
    user_id = resolve_user_id(user)
    if user_id is None:
        return None

    try:
        async with runtime_factory() as runtime:
            return await _check_or_enqueue(runtime, user_id)
    except UserNotFoundError:
        return None
    except Exception:
        logger.exception("phone_bonus_event_handling_failed", user_id=user_id)
        return None


async def _check_or_enqueue(runtime: PhoneBonusRuntime, user_id: int) -> GuardResult | bool | None:
    bonus_settings = await runtime.settings_provider.get_bonus_settings()
    if not bonus_settings.enabled:
        return None

    if runtime.settings.phone_field_bonus_async_mode:
        return await enqueue_phone_bonus_check(
            runtime.kv_store,
            bonus_settings,
            user_id=user_id,
        )

    guard = await runtime.get_guard()
    return await guard.check_and_award(user_id)


def build_user_event_handler(runtime_factory: RuntimeFactory = phone_bonus_runtime) -> UserEventHandler:
    async def _handler(user: object) -> None:
        await handle_user_changed(user, runtime_factory=runtime_factory)

    return _handler


def register_event_handlers(
    bus: EventBus,
    *,
    runtime_factory: RuntimeFactory = phone_bonus_runtime,
) -> UserEventHandler:
    handler = build_user_event_handler(runtime_factory)
    for event in UserEvent:
        bus.on(event.value, handler)
    logger.info("phone_bonus_event_handlers_registered", events=[event.value for event in UserEvent])
    return handler
