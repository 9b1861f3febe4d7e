"""Snapshot persistence for resumable wizards."""

from .autosave import PersistedSnapshot, build_snapshot, parse_snapshot, serialize_snapshot
from .persistence import (
    InMemoryStorage,
    JsonFileStorage,
    PersistenceAdapter,
    SessionStateStorage,
    SnapshotPersistence,
)

__all__ = [
    "InMemoryStorage",
    "JsonFileStorage",
    "PersistedSnapshot",
    "PersistenceAdapter",
    "SessionStateStorage",
    "SnapshotPersistence",
    "build_snapshot",
    "parse_snapshot",
    "serialize_snapshot",
]
