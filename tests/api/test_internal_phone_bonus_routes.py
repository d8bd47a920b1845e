from __future__ import annotations

import asyncio
from types import SimpleNamespace

from fastapi.testclient import TestClient

from phone_field_bonus.api.routes import internal_phone_bonus
from phone_field_bonus.bonus.keys import rate_limit_key
from phone_field_bonus.main import app
from tests.bonus.phone_bonus_fixtures import FakeUserStore, phone_user
from tests.services.phone_bonus_runtime_fixtures import build_runtime, runtime_factory

TOKEN_HEADERS = {"X-Internal-Token": "internal-secret"}


def _internal_settings(allowlist: str = "127.0.0.1/32") -> SimpleNamespace:
    return SimpleNamespace(
        internal_api_token="internal-secret",
        internal_api_allowlist=allowlist,
        internal_api_trusted_proxies="",
    )


def _patch_runtime(monkeypatch, runtime) -> None:
    monkeypatch.setattr(internal_phone_bonus, "get_settings", _internal_settings)
    monkeypatch.setattr(internal_phone_bonus, "phone_bonus_runtime", runtime_factory(runtime))


def test_internal_phone_bonus_rejects_missing_token(monkeypatch) -> None:
    monkeypatch.setattr(internal_phone_bonus, "get_settings", _internal_settings)

    client = TestClient(app, client=("127.0.0.1", 5200))
    response = client.get("/internal/phone-bonus/health")

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_phone_bonus_rejects_disallowed_ip(monkeypatch) -> None:
    monkeypatch.setattr(
        internal_phone_bonus,
        "get_settings",
        lambda: _internal_settings(allowlist="192.168.0.0/16"),
    )

    client = TestClient(app, client=("10.0.0.25", 5201))
    response = client.get("/internal/phone-bonus/health", headers=TOKEN_HEADERS)

    assert response.status_code == 403
    assert response.json() == {"detail": {"code": "E_FORBIDDEN"}}


def test_internal_phone_bonus_user_diagnostics(monkeypatch) -> None:
    runtime = build_runtime(users=FakeUserStore([phone_user(7, "+1 (555) 123-4567")]))
    _patch_runtime(monkeypatch, runtime)

    client = TestClient(app, client=("127.0.0.1", 5202))
    response = client.get("/internal/phone-bonus/users/7", headers=TOKEN_HEADERS)

    assert response.status_code == 200
    payload = response.json()
    assert payload["phone_valid"] is True
    assert payload["phone_digit_count"] == 11
    assert payload["awarded"] is False
    assert "+1 (555) 123-4567" not in response.text


def test_internal_phone_bonus_unknown_user_returns_404(monkeypatch) -> None:
    _patch_runtime(monkeypatch, build_runtime())

    client = TestClient(app, client=("127.0.0.1", 5203))
    diagnose = client.get("/internal/phone-bonus/users/404", headers=TOKEN_HEADERS)
    recheck = client.post("/internal/phone-bonus/users/404/recheck", headers=TOKEN_HEADERS)

    assert diagnose.status_code == 404
    assert recheck.status_code == 404
    assert recheck.json() == {"detail": {"code": "E_USER_NOT_FOUND"}}


def test_internal_phone_bonus_recheck_user_grants(monkeypatch) -> None:
    runtime = build_runtime(users=FakeUserStore([phone_user(8, "5551234567")]))
    _patch_runtime(monkeypatch, runtime)

    client = TestClient(app, client=("127.0.0.1", 5204))
    response = client.post("/internal/phone-bonus/users/8/recheck", headers=TOKEN_HEADERS)

    assert response.status_code == 200
    assert response.json() == {"user_id": 8, "status": "GRANTED", "backend": "recording"}


def test_internal_phone_bonus_rate_limit_state_and_clear(monkeypatch) -> None:
    runtime = build_runtime()
    _patch_runtime(monkeypatch, runtime)

    asyncio.run(runtime.kv_store.set(rate_limit_key(9), "10", ex=300))

    client = TestClient(app, client=("127.0.0.1", 5205))
    state = client.get("/internal/phone-bonus/rate-limits/9", headers=TOKEN_HEADERS)
    cleared = client.delete("/internal/phone-bonus/rate-limits?user_id=9", headers=TOKEN_HEADERS)

    assert state.status_code == 200
    assert state.json()["limited"] is True
    assert cleared.json() == {"deleted_keys": 1}


def test_internal_phone_bonus_recheck_all_enqueues_task(monkeypatch) -> None:
    captured: dict[str, object] = {}

    def _fake_delay(**kwargs):
        captured.update(kwargs)
        return SimpleNamespace(id="task-123")

    monkeypatch.setattr(internal_phone_bonus, "get_settings", _internal_settings)
    monkeypatch.setattr(
        internal_phone_bonus,
        "recheck_unawarded_users",
        SimpleNamespace(delay=_fake_delay),
    )

    client = TestClient(app, client=("127.0.0.1", 5206))
    response = client.post(
        "/internal/phone-bonus/recheck-all",
        headers=TOKEN_HEADERS,
        json={"batch_size": 50},
    )

    assert response.status_code == 202
    assert response.json() == {"task_id": "task-123"}
    assert captured == {"batch_size": 50, "batch_delay_seconds": None}


def test_internal_phone_bonus_stats_returns_requested_days(monkeypatch) -> None:
    _patch_runtime(monkeypatch, build_runtime())

    client = TestClient(app, client=("127.0.0.1", 5207))
    response = client.get("/internal/phone-bonus/stats?days=3", headers=TOKEN_HEADERS)

    assert response.status_code == 200
    assert len(response.json()["days"]) == 3
