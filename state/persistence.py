"""Pluggable storage backends for resumable wizards.

Backends implement the :class:`PersistenceAdapter` protocol and raise
:class:`~core.errors.PersistenceError` when storage misbehaves. The engine
never talks to a backend directly: it goes through
:class:`SnapshotPersistence`, which serialises writes and turns every failure
into a logged, non-fatal event.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, MutableMapping, Protocol, runtime_checkable

import streamlit as st

from constants.keys import StateKeys
from core.errors import PersistenceError
from state.autosave import PersistedSnapshot, parse_snapshot, serialize_snapshot, snapshot_to_payload

logger = logging.getLogger(__name__)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


@runtime_checkable
class PersistenceAdapter(Protocol):
    """Durable key-value storage for :class:`PersistedSnapshot` objects."""

    async def save(self, key: str, snapshot: PersistedSnapshot) -> None: ...

    async def load(self, key: str) -> PersistedSnapshot | None: ...

    async def clear(self, key: str) -> None: ...


class InMemoryStorage:
    """Process-local backend keeping JSON payloads in a dictionary."""

    def __init__(self, store: MutableMapping[str, Any] | None = None) -> None:
        self._store: MutableMapping[str, Any] = store if store is not None else {}

    async def save(self, key: str, snapshot: PersistedSnapshot) -> None:
        try:
            self._store[key] = snapshot_to_payload(snapshot)
        except ValueError as exc:
            raise PersistenceError(f"Cannot store snapshot: {exc}", storage_key=key) from exc

    async def load(self, key: str) -> PersistedSnapshot | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        return parse_snapshot(raw)

    async def clear(self, key: str) -> None:
        self._store.pop(key, None)


class SessionStateStorage(InMemoryStorage):
    """Backend living in Streamlit's ``st.session_state``.

    Snapshots survive reruns of the script but not a new browser session.
    The bucket is resolved on each call so a replaced session state (e.g. in
    tests) is picked up.
    """

    def __init__(self, state_key: str = StateKeys.SNAPSHOTS) -> None:
        self._state_key = state_key

    @property
    def _store(self) -> MutableMapping[str, Any]:  # type: ignore[override]
        bucket = st.session_state.get(self._state_key)
        if not isinstance(bucket, dict):
            bucket = {}
            st.session_state[self._state_key] = bucket
        return bucket


class JsonFileStorage:
    """Backend writing one JSON document per storage key into ``directory``.

    Writes go to a temporary file that is atomically moved into place, and
    all file I/O runs in a worker thread so the event loop is not blocked.
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory)

    def path_for(self, key: str) -> Path:
        safe = _UNSAFE_FILENAME_CHARS.sub("_", key).strip("._") or "snapshot"
        return self.directory / f"{safe}.json"

    async def save(self, key: str, snapshot: PersistedSnapshot) -> None:
        payload = serialize_snapshot(snapshot)
        await asyncio.to_thread(self._write, key, payload)

    async def load(self, key: str) -> PersistedSnapshot | None:
        raw = await asyncio.to_thread(self._read, key)
        if raw is None:
            return None
        return parse_snapshot(raw)

    async def clear(self, key: str) -> None:
        await asyncio.to_thread(self._remove, key)

    def _write(self, key: str, payload: bytes) -> None:
        target = self.path_for(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.stem}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "wb") as handle:
                    handle.write(payload)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            raise PersistenceError(f"Failed to write {target}: {exc}", storage_key=key) from exc

    def _read(self, key: str) -> bytes | None:
        target = self.path_for(key)
        try:
            return target.read_bytes()
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise PersistenceError(f"Failed to read {target}: {exc}", storage_key=key) from exc

    def _remove(self, key: str) -> None:
        target = self.path_for(key)
        try:
            target.unlink(missing_ok=True)
        except OSError as exc:
            raise PersistenceError(f"Failed to remove {target}: {exc}", storage_key=key) from exc


class SnapshotPersistence:
    """Best-effort, write-serialised access to a backend for one storage key."""

    def __init__(self, backend: PersistenceAdapter, storage_key: str) -> None:
        self.backend = backend
        self.storage_key = storage_key
        self._write_lock = asyncio.Lock()
        self.last_error: Exception | None = None

    async def save(self, snapshot: PersistedSnapshot) -> bool:
        """Write ``snapshot``; return ``False`` (after logging) when storage fails."""

        async with self._write_lock:
            try:
                await self.backend.save(self.storage_key, snapshot)
            except Exception as exc:
                self._record_failure("save", exc)
                return False
        self.last_error = None
        logger.debug("Saved snapshot for '%s' at step %s", self.storage_key, snapshot.cursor_index)
        return True

    async def load(self) -> PersistedSnapshot | None:
        try:
            snapshot = await self.backend.load(self.storage_key)
        except Exception as exc:
            self._record_failure("load", exc)
            return None
        if snapshot is not None and snapshot.storage_key != self.storage_key:
            logger.warning(
                "Ignoring snapshot stored under '%s' that belongs to '%s'",
                self.storage_key,
                snapshot.storage_key,
            )
            return None
        return snapshot

    async def clear(self) -> bool:
        async with self._write_lock:
            try:
                await self.backend.clear(self.storage_key)
            except Exception as exc:
                self._record_failure("clear", exc)
                return False
        return True

    def _record_failure(self, operation: str, exc: Exception) -> None:
        error = exc if isinstance(exc, PersistenceError) else PersistenceError(str(exc), storage_key=self.storage_key)
        self.last_error = error
        logger.warning(
            "Snapshot %s failed for '%s'; continuing in memory: %s",
            operation,
            self.storage_key,
            exc,
        )


__all__ = [
    "InMemoryStorage",
    "JsonFileStorage",
    "PersistenceAdapter",
    "SessionStateStorage",
    "SnapshotPersistence",
]
