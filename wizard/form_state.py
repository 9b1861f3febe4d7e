"""Cumulative form data shared by every step of a wizard instance."""

from __future__ import annotations

import copy
from collections.abc import Iterator, Mapping, MutableMapping
from types import MappingProxyType
from typing import Any, Callable

from wizard.types import FormData

ChangeListener = Callable[[str, Any], None]


class FormState(MutableMapping[str, Any]):
    """Mapping from field name to value spanning all steps.

    Values written while any step is active stay in place when the cursor
    moves; the state is only replaced wholesale through :meth:`reset` or
    :meth:`replace`. An optional listener is told about every edit so the
    engine can schedule an autosave.
    """

    def __init__(self, defaults: Mapping[str, Any] | None = None) -> None:
        self._defaults: FormData = copy.deepcopy(dict(defaults or {}))
        self._data: FormData = copy.deepcopy(self._defaults)
        self._listener: ChangeListener | None = None

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._notify(key, value)

    def __delitem__(self, key: str) -> None:
        del self._data[key]
        self._notify(key, None)

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FormState({self._data!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FormState):
            return self._data == other._data
        if isinstance(other, Mapping):
            return self._data == dict(other)
        return NotImplemented

    @property
    def defaults(self) -> Mapping[str, Any]:
        return MappingProxyType(self._defaults)

    def set_listener(self, listener: ChangeListener | None) -> None:
        self._listener = listener

    def update_fields(self, values: Mapping[str, Any]) -> None:
        """Apply several edits, notifying the listener once per field."""

        for key, value in values.items():
            self[key] = value

    def snapshot(self) -> FormData:
        """Return a deep copy that callers may mutate freely."""

        return copy.deepcopy(self._data)

    def read_only_view(self) -> Mapping[str, Any]:
        """Return an immutable view over a copy of the current data."""

        return MappingProxyType(self.snapshot())

    def replace(self, values: Mapping[str, Any]) -> None:
        """Swap in ``values`` merged over the defaults without firing the listener."""

        merged = copy.deepcopy(self._defaults)
        merged.update(copy.deepcopy(dict(values)))
        self._data = merged

    def reset(self) -> None:
        """Restore the defaults without firing the listener."""

        self._data = copy.deepcopy(self._defaults)

    def _notify(self, key: str, value: Any) -> None:
        if self._listener is not None:
            self._listener(key, value)


__all__ = ["ChangeListener", "FormState"]
