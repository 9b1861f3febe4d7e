from __future__ import annotations

import asyncio
import json

import pytest
import streamlit as st

from constants.keys import StateKeys
from core.errors import PersistenceError
from state.autosave import PersistedSnapshot, build_snapshot
from state.persistence import (
    InMemoryStorage,
    JsonFileStorage,
    PersistenceAdapter,
    SessionStateStorage,
    SnapshotPersistence,
)


def _snapshot(key: str = "onboarding", cursor: int = 0, **fields) -> PersistedSnapshot:
    return build_snapshot(key, fields, cursor_index=cursor)


@pytest.mark.asyncio
async def test_in_memory_storage_round_trip() -> None:
    storage = InMemoryStorage()

    assert await storage.load("onboarding") is None
    await storage.save("onboarding", _snapshot(cursor=1, x="v1"))
    loaded = await storage.load("onboarding")

    assert loaded is not None
    assert loaded.cursor_index == 1
    assert loaded.form_state == {"x": "v1"}

    await storage.clear("onboarding")
    assert await storage.load("onboarding") is None


@pytest.mark.asyncio
async def test_session_state_storage_uses_streamlit_bucket() -> None:
    storage = SessionStateStorage()

    await storage.save("onboarding", _snapshot(x="v1"))

    bucket = st.session_state[StateKeys.SNAPSHOTS]
    assert bucket["onboarding"]["form_state"] == {"x": "v1"}
    assert (await storage.load("onboarding")).form_state == {"x": "v1"}


@pytest.mark.asyncio
async def test_json_file_storage_writes_atomically(tmp_path) -> None:
    storage = JsonFileStorage(tmp_path / "snapshots")

    await storage.save("partner/onboarding", _snapshot("partner/onboarding", cursor=2, iban="DE00"))

    path = storage.path_for("partner/onboarding")
    assert path.parent == tmp_path / "snapshots"
    assert path.name == "partner_onboarding.json"
    assert json.loads(path.read_text(encoding="utf-8"))["cursor_index"] == 2
    assert [p.name for p in path.parent.iterdir()] == [path.name]

    loaded = await storage.load("partner/onboarding")
    assert loaded is not None and loaded.form_state == {"iban": "DE00"}

    await storage.clear("partner/onboarding")
    await storage.clear("partner/onboarding")
    assert not path.exists()
    assert await storage.load("partner/onboarding") is None


@pytest.mark.asyncio
async def test_json_file_storage_reports_corrupt_files(tmp_path) -> None:
    storage = JsonFileStorage(tmp_path)
    storage.path_for("k").write_text("{broken", encoding="utf-8")

    with pytest.raises(PersistenceError):
        await storage.load("k")


def test_backends_satisfy_protocol(tmp_path) -> None:
    for backend in (InMemoryStorage(), SessionStateStorage(), JsonFileStorage(tmp_path)):
        assert isinstance(backend, PersistenceAdapter)


@pytest.mark.asyncio
async def test_failures_are_logged_not_raised(storage, caplog) -> None:
    persistence = SnapshotPersistence(storage, "onboarding")
    storage.fail_on.update({"save", "load", "clear"})

    with caplog.at_level("WARNING", logger="state.persistence"):
        assert await persistence.save(_snapshot()) is False
        assert await persistence.load() is None
        assert await persistence.clear() is False

    assert isinstance(persistence.last_error, PersistenceError)
    assert "continuing in memory" in caplog.text


@pytest.mark.asyncio
async def test_load_ignores_snapshot_for_another_key() -> None:
    backend = InMemoryStorage()
    await backend.save("shared", _snapshot("someone-else"))

    assert await SnapshotPersistence(backend, "shared").load() is None


@pytest.mark.asyncio
async def test_writes_are_serialised() -> None:
    events: list[str] = []

    class _SlowStorage(InMemoryStorage):
        async def save(self, key: str, snapshot: PersistedSnapshot) -> None:
            events.append(f"start:{snapshot.cursor_index}")
            await asyncio.sleep(0.01)
            await super().save(key, snapshot)
            events.append(f"end:{snapshot.cursor_index}")

    backend = _SlowStorage()
    persistence = SnapshotPersistence(backend, "onboarding")

    await asyncio.gather(
        persistence.save(_snapshot(cursor=0)),
        persistence.save(_snapshot(cursor=1)),
    )

    assert events == ["start:0", "end:0", "start:1", "end:1"]
    assert (await backend.load("onboarding")).cursor_index == 1
