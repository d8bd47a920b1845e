from __future__ import annotations

from phone_field_bonus.bonus.types import HostUser

USER_FIELD_CUSTOM_PREFIX = "user_field_"


def _present(value: object) -> bool:
    if value is None:
        return False
    return bool(str(value).strip())


def extract_phone_value(user: HostUser, field_id: int | str) -> str | None:
    key = str(field_id).strip()
    if not key:
        return None

    primary = (user.user_fields or {}).get(key)
    if _present(primary):
        return str(primary)

    fallback = (user.custom_fields or {}).get(f"{USER_FIELD_CUSTOM_PREFIX}{key}")
    if _present(fallback):
        return str(fallback)
    return None
