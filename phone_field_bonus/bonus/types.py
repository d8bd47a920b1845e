from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

AWARDED_FIELD_NAME = "phone_field_bonus_awarded"
AWARDED_FIELD_VALUE = "true"
POINTS_COUNTER_FIELD_NAME = "phone_field_bonus_points"
SCORE_EVENT_DESCRIPTION = "phone_field_completed"

STATUS_DISABLED = "DISABLED"
STATUS_INVALID_INPUT = "INVALID_INPUT"
STATUS_ALREADY_AWARDED = "ALREADY_AWARDED"
STATUS_RATE_LIMITED = "RATE_LIMITED"
STATUS_INELIGIBLE = "INELIGIBLE"
STATUS_BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
STATUS_LOCKED = "LOCKED"
STATUS_GRANTED = "GRANTED"
STATUS_FAILED = "FAILED"


@dataclass(frozen=True, slots=True)
class HostUser:
    id: int
    user_fields: Mapping[str, str] = field(default_factory=dict)
    custom_fields: Mapping[str, str] = field(default_factory=dict)

    @property
    def bonus_awarded(self) -> bool:
        return self.custom_fields.get(AWARDED_FIELD_NAME) == AWARDED_FIELD_VALUE


@dataclass(frozen=True, slots=True)
class BonusSettings:
    enabled: bool
    points: int
    field_id: str
    rate_limit_window_seconds: int = 300
    rate_limit_max_checks: int = 10
    lock_ttl_seconds: int = 300
    debounce_seconds: int = 10
    enqueue_delay_seconds: int = 5


@dataclass(frozen=True, slots=True)
class GuardResult:
    status: str
    user_id: int | None = None
    backend: str | None = None

    @property
    def granted(self) -> bool:
        return self.status == STATUS_GRANTED
