"""Snapshot model plus build/parse/serialise helpers for wizard autosave."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from constants.keys import SnapshotKeys
from core.errors import PersistenceError


SNAPSHOT_VERSION = 1

AutosavePayload = dict[str, Any]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PersistedSnapshot(BaseModel):
    """Durable copy of a wizard's form state and cursor position."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    storage_key: str
    form_state: dict[str, Any] = Field(default_factory=dict)
    cursor_index: int = Field(default=0, ge=0)
    max_reached_index: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=_utcnow)
    version: int = SNAPSHOT_VERSION

    @field_validator("timestamp")
    @classmethod
    def _ensure_timezone(cls, value: datetime) -> datetime:
        """Treat naive timestamps as UTC."""

        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


def build_snapshot(
    storage_key: str,
    form_state: Mapping[str, Any],
    *,
    cursor_index: int,
    max_reached_index: int | None = None,
) -> PersistedSnapshot:
    """Return a snapshot of the current wizard position."""

    reached = cursor_index if max_reached_index is None else max(max_reached_index, cursor_index)
    return PersistedSnapshot(
        storage_key=storage_key,
        form_state=dict(form_state),
        cursor_index=cursor_index,
        max_reached_index=reached,
    )


def parse_snapshot(payload: Mapping[str, Any] | str | bytes) -> PersistedSnapshot:
    """Normalise a stored payload into a :class:`PersistedSnapshot`.

    Raises:
        PersistenceError: when the payload is not valid JSON or does not
            match the snapshot shape.
    """

    try:
        if isinstance(payload, (str, bytes)):
            return PersistedSnapshot.model_validate_json(payload)
        return PersistedSnapshot.model_validate(dict(payload))
    except (ValidationError, TypeError, ValueError) as exc:
        storage_key = payload.get(SnapshotKeys.STORAGE_KEY) if isinstance(payload, Mapping) else None
        raise PersistenceError(
            f"Unreadable snapshot: {exc}",
            storage_key=storage_key if isinstance(storage_key, str) else None,
        ) from exc


def snapshot_to_payload(snapshot: PersistedSnapshot) -> AutosavePayload:
    """Return a JSON-compatible mapping for ``snapshot``."""

    return snapshot.model_dump(mode="json")


def serialize_snapshot(snapshot: PersistedSnapshot) -> bytes:
    """Return a JSON representation of ``snapshot``."""

    try:
        return json.dumps(snapshot_to_payload(snapshot), ensure_ascii=False, indent=2).encode("utf-8")
    except (TypeError, ValueError) as exc:
        raise PersistenceError(
            f"Form state is not JSON serialisable: {exc}",
            storage_key=snapshot.storage_key,
        ) from exc


__all__ = [
    "AutosavePayload",
    "PersistedSnapshot",
    "SNAPSHOT_VERSION",
    "build_snapshot",
    "parse_snapshot",
    "serialize_snapshot",
    "snapshot_to_payload",
]
