from __future__ import annotations

from types import SimpleNamespace

import pytest

from phone_field_bonus.services import settings_provider
from phone_field_bonus.services.settings_provider import SiteSettingsProvider, build_bonus_settings


def _settings(**overrides) -> SimpleNamespace:
    values = {
        "phone_field_bonus_enabled": False,
        "phone_field_bonus_points": 10,
        "phone_field_bonus_field_id": "1",
        "phone_field_bonus_rate_limit_window_seconds": 300,
        "phone_field_bonus_rate_limit_max_checks": 10,
        "phone_field_bonus_lock_ttl_seconds": 300,
        "phone_field_bonus_debounce_seconds": 10,
        "phone_field_bonus_enqueue_delay_seconds": 5,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


def test_build_bonus_settings_uses_process_defaults() -> None:
    result = build_bonus_settings(_settings())

    assert result.enabled is False
    assert result.points == 10
    assert result.field_id == "1"


def test_build_bonus_settings_applies_site_overrides() -> None:
    result = build_bonus_settings(
        _settings(),
        {
            "phone_field_bonus_enabled": "t",
            "phone_field_bonus_points": "25",
            "phone_field_bonus_field_id": " 4 ",
        },
    )

    assert result.enabled is True
    assert result.points == 25
    assert result.field_id == "4"


def test_build_bonus_settings_ignores_malformed_overrides_and_clamps_debounce() -> None:
    result = build_bonus_settings(
        _settings(phone_field_bonus_debounce_seconds=90),
        {"phone_field_bonus_enabled": "maybe", "phone_field_bonus_points": "lots"},
    )

    assert result.enabled is False
    assert result.points == 10
    assert result.debounce_seconds == 30


@pytest.mark.asyncio
async def test_site_settings_provider_reads_host_rows(monkeypatch) -> None:
    captured: dict[str, object] = {}

    async def _fake_get_values(session, *, names):
        captured["names"] = tuple(names)
        return {"phone_field_bonus_enabled": "true"}

    class _Session:
        async def __aenter__(self):
            return object()

        async def __aexit__(self, exc_type, exc, tb) -> bool:
            return False

    monkeypatch.setattr(settings_provider.SiteSettingsRepo, "get_values", _fake_get_values)
    provider = SiteSettingsProvider(settings=_settings(), session_factory=lambda: _Session())

    result = await provider.get_bonus_settings()

    assert result.enabled is True
    assert "phone_field_bonus_field_id" in captured["names"]
