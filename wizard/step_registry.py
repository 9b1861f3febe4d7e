"""Registry for wizard steps, metadata, and canonical order."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any, Mapping, overload

from pydantic import BaseModel

from core.errors import ConfigurationError
from wizard.types import StepValidator


@dataclass(frozen=True)
class StepDefinition:
    """Metadata + validation contract for an individual wizard step.

    ``field_keys`` names the form fields the step renders; ``validate`` is an
    optional predicate over the *whole* form state, and ``schema`` an optional
    pydantic model checked against the step's own fields to produce
    field-level messages. ``component`` is an opaque rendering target the
    engine never inspects.
    """

    id: str
    title: str
    description: str = ""
    field_keys: frozenset[str] = field(default_factory=frozenset)
    validate: StepValidator | None = field(default=None, compare=False)
    schema: type[BaseModel] | None = field(default=None, compare=False)
    component: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not isinstance(self.id, str) or not self.id.strip():
            raise ConfigurationError("StepDefinition.id must be a non-empty string")
        if not isinstance(self.field_keys, frozenset):
            object.__setattr__(self, "field_keys", frozenset(self.field_keys))
        if self.validate is not None and not callable(self.validate):
            raise ConfigurationError(f"Validator for step '{self.id}' is not callable")

    @property
    def has_validation(self) -> bool:
        return self.validate is not None or self.schema is not None

    def pick_fields(self, data: Mapping[str, Any]) -> dict[str, Any]:
        """Return the subset of ``data`` owned by this step."""

        return {key: data[key] for key in self.field_keys if key in data}


class StepRegistry(Sequence[StepDefinition]):
    """Immutable, ordered collection of :class:`StepDefinition` objects."""

    def __init__(self, steps: Iterable[StepDefinition]) -> None:
        ordered = tuple(steps)
        if not ordered:
            raise ConfigurationError("A wizard needs at least one step")
        seen: set[str] = set()
        for step in ordered:
            if not isinstance(step, StepDefinition):
                raise ConfigurationError(f"Expected StepDefinition, got {type(step).__name__}")
            if step.id in seen:
                raise ConfigurationError(f"Duplicate step id '{step.id}'")
            seen.add(step.id)
        self._steps: tuple[StepDefinition, ...] = ordered

    @overload
    def __getitem__(self, index: int) -> StepDefinition: ...

    @overload
    def __getitem__(self, index: slice) -> tuple[StepDefinition, ...]: ...

    def __getitem__(self, index: int | slice) -> StepDefinition | tuple[StepDefinition, ...]:
        return self._steps[index]

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[StepDefinition]:
        return iter(self._steps)

    def __repr__(self) -> str:
        return f"StepRegistry({[step.id for step in self._steps]!r})"

    @property
    def last_index(self) -> int:
        return len(self._steps) - 1

    def contains_index(self, index: int) -> bool:
        return 0 <= index < len(self._steps)


__all__ = ["StepDefinition", "StepRegistry"]
