from __future__ import annotations

import pytest

from phone_field_bonus.bonus.awarder import Awarder
from tests.bonus.phone_bonus_fixtures import FakeUserStore, RecordingBackend, phone_user


def _store() -> FakeUserStore:
    return FakeUserStore([phone_user(5, "5551234567")])


@pytest.mark.asyncio
async def test_award_grants_points_and_records_award_together() -> None:
    backend = RecordingBackend()
    users = _store()
    awarder = Awarder(backend)

    assert await awarder.award(5, 25, user_store=users) is True
    assert backend.granted == [(5, 25)]
    assert users.mark_calls == [5]
    assert awarder.backend_name == "recording"


@pytest.mark.asyncio
async def test_award_converts_backend_errors_to_false() -> None:
    users = _store()
    awarder = Awarder(RecordingBackend(error=RuntimeError("boom")))

    assert await awarder.award(5, 25, user_store=users) is False
    assert users.mark_calls == []


@pytest.mark.asyncio
async def test_award_record_failure_discards_points() -> None:
    class _BrokenRecordStore(FakeUserStore):
        async def write_award_record(self, transaction, user_id: int) -> None:
            raise ConnectionError("database gone")

    backend = RecordingBackend()
    awarder = Awarder(backend)

    assert await awarder.award(5, 25, user_store=_BrokenRecordStore([phone_user(5, "5551234567")])) is False
    assert backend.calls == [(5, 25)]
    assert backend.granted == []


@pytest.mark.asyncio
async def test_award_returns_false_when_backend_rejects() -> None:
    users = _store()
    awarder = Awarder(RecordingBackend(result=False))

    assert await awarder.award(5, 25, user_store=users) is False
    assert users.mark_calls == []


@pytest.mark.asyncio
async def test_award_without_backend_is_unavailable() -> None:
    awarder = Awarder(None)

    assert awarder.available is False
    assert awarder.backend_name is None
    assert await awarder.award(5, 25, user_store=_store()) is False
