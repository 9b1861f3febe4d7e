from pathlib import Path
import sys
from dataclasses import dataclass
from typing import Any, Mapping

import streamlit as st

import pytest


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.errors import PersistenceError  # noqa: E402
from state.autosave import PersistedSnapshot  # noqa: E402
from state.persistence import InMemoryStorage  # noqa: E402
from wizard.step_registry import StepDefinition  # noqa: E402


@dataclass
class _SessionDict(dict[str, object]):
    """Lightweight replacement for ``st.session_state`` during tests."""

    def clear(self) -> None:  # type: ignore[override]
        super().clear()


@pytest.fixture(autouse=True)
def _stub_streamlit_session_state(monkeypatch: pytest.MonkeyPatch) -> None:
    """Replace Streamlit's runtime-bound session state with a plain dictionary."""

    session_state = _SessionDict()
    monkeypatch.setattr(st, "session_state", session_state, raising=False)
    yield


class RecordingStorage(InMemoryStorage):
    """In-memory backend that records calls and can be told to fail."""

    def __init__(self) -> None:
        super().__init__()
        self.calls: list[tuple[str, str]] = []
        self.fail_on: set[str] = set()

    async def save(self, key: str, snapshot: PersistedSnapshot) -> None:
        self.calls.append(("save", key))
        if "save" in self.fail_on:
            raise PersistenceError("disk full", storage_key=key)
        await super().save(key, snapshot)

    async def load(self, key: str) -> PersistedSnapshot | None:
        self.calls.append(("load", key))
        if "load" in self.fail_on:
            raise PersistenceError("unreadable", storage_key=key)
        return await super().load(key)

    async def clear(self, key: str) -> None:
        self.calls.append(("clear", key))
        if "clear" in self.fail_on:
            raise PersistenceError("locked", storage_key=key)
        await super().clear(key)

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


@pytest.fixture
def storage() -> RecordingStorage:
    return RecordingStorage()


def _require_min_length(field: str, length: int):
    async def _validate(data: Mapping[str, Any]) -> bool:
        return len(str(data.get(field) or "")) >= length

    return _validate


@pytest.fixture
def two_steps() -> tuple[StepDefinition, ...]:
    """Steps A(x) and B(y); A requires a non-empty ``x``."""

    return (
        StepDefinition(id="A", title="A", field_keys=frozenset({"x"}), validate=_require_min_length("x", 1)),
        StepDefinition(id="B", title="B", field_keys=frozenset({"y"})),
    )


@pytest.fixture
def three_steps() -> tuple[StepDefinition, ...]:
    return (
        StepDefinition(id="one", title="One", field_keys=frozenset({"a"}), validate=_require_min_length("a", 1)),
        StepDefinition(id="two", title="Two", field_keys=frozenset({"b"}), validate=_require_min_length("b", 1)),
        StepDefinition(id="three", title="Three", field_keys=frozenset({"c"})),
    )
