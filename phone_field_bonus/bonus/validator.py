from __future__ import annotations

import re

PHONE_MIN_DIGITS = 8
PHONE_MAX_DIGITS = 15

_NON_DIGIT_RE = re.compile(r"[^0-9]")


def phone_digits(value: object) -> str:
    if value is None:
        return ""
    return _NON_DIGIT_RE.sub("", str(value))


def is_valid_phone(value: object) -> bool:
    digits = phone_digits(value)
    return PHONE_MIN_DIGITS <= len(digits) <= PHONE_MAX_DIGITS
