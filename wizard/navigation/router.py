from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Mapping

from core.errors import ConfigurationError, StepValidationError
from wizard.step_registry import StepDefinition, StepRegistry
from wizard.types import FieldErrors
from wizard.validation import ValidationGate, ValidationOutcome

logger = logging.getLogger(__name__)

ApplyGuard = Callable[[], bool]


class TransitionOutcome(StrEnum):
    """How a navigation request ended."""

    ADVANCED = "advanced"
    RETREATED = "retreated"
    JUMPED = "jumped"
    UNCHANGED = "unchanged"
    BLOCKED = "blocked"
    AT_BOUNDARY = "at_boundary"
    IGNORED = "ignored"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of ``next_step``/``prev_step``/``go_to_step``."""

    outcome: TransitionOutcome
    from_index: int
    to_index: int
    field_errors: FieldErrors = field(default_factory=dict)
    error: StepValidationError | None = None

    @property
    def moved(self) -> bool:
        return self.from_index != self.to_index and self.outcome in {
            TransitionOutcome.ADVANCED,
            TransitionOutcome.RETREATED,
            TransitionOutcome.JUMPED,
        }

    @classmethod
    def stay(cls, outcome: TransitionOutcome, index: int) -> "TransitionResult":
        return cls(outcome=outcome, from_index=index, to_index=index)

    @classmethod
    def rejected(cls, index: int, validation: ValidationOutcome) -> "TransitionResult":
        return cls(
            outcome=TransitionOutcome.BLOCKED,
            from_index=index,
            to_index=index,
            field_errors=dict(validation.field_errors),
            error=validation.error,
        )


def _always_apply() -> bool:
    return True


class StepNavigator:
    """Own the step cursor and enforce the wizard's ordering rules.

    Responsibilities:
    - keep ``0 <= current_index < len(steps)``
    - validate the current step before any forward move
    - track the furthest unlocked step; forward jumps re-validate every
      step they pass over and relock from the first one that fails

    ``apply_guard`` lets the owner veto applying a result after the async
    validator returns (e.g. when the UI has been torn down meanwhile).
    """

    def __init__(
        self,
        steps: StepRegistry,
        *,
        gate: ValidationGate | None = None,
        start_index: int = 0,
        max_reached_index: int = 0,
    ) -> None:
        self.steps = steps
        self.gate = gate or ValidationGate()
        self._current_index = 0
        self._max_reached_index = 0
        self.restore(start_index, max_reached_index)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_step(self) -> StepDefinition:
        return self.steps[self._current_index]

    @property
    def total_steps(self) -> int:
        return len(self.steps)

    @property
    def max_reached_index(self) -> int:
        """Furthest step the user has been allowed to reach."""

        return self._max_reached_index

    @property
    def is_first_step(self) -> bool:
        return self._current_index == 0

    @property
    def is_last_step(self) -> bool:
        return self._current_index == self.steps.last_index

    @property
    def progress(self) -> float:
        """Percentage of the flow shown so far, counting the active step."""

        return (self._current_index + 1) / len(self.steps) * 100.0

    def can_go_next(self) -> bool:
        return self._current_index < self.steps.last_index

    def can_go_previous(self) -> bool:
        return self._current_index > 0

    def is_step_unlocked(self, index: int) -> bool:
        return 0 <= index <= self._max_reached_index

    def restore(self, index: int, max_reached_index: int | None = None) -> None:
        """Place the cursor after hydration, clamping stale positions into range."""

        last = self.steps.last_index
        clamped = min(max(int(index), 0), last)
        if clamped != index:
            logger.warning("Clamped restored step index %s into [0, %s]", index, last)
        reached = clamped if max_reached_index is None else min(max(int(max_reached_index), clamped), last)
        self._current_index = clamped
        self._max_reached_index = reached

    def reset(self) -> None:
        self._current_index = 0
        self._max_reached_index = 0

    async def next_step(
        self,
        data: Mapping[str, Any],
        *,
        apply_guard: ApplyGuard = _always_apply,
    ) -> TransitionResult:
        """Validate the current step and advance by one on success."""

        origin = self._current_index
        if not self.can_go_next():
            logger.debug("Cannot go next: already at last step (%s)", origin)
            return TransitionResult.stay(TransitionOutcome.AT_BOUNDARY, origin)

        validation = await self.gate.run(self.current_step, data)
        if not apply_guard():
            return TransitionResult.stay(TransitionOutcome.DISCARDED, origin)
        if not validation.passed:
            logger.info("Step %s validation failed: %s", origin, sorted(validation.field_errors))
            return TransitionResult.rejected(origin, validation)

        self._mark_validated(origin)
        self._move_to(origin + 1)
        return TransitionResult(outcome=TransitionOutcome.ADVANCED, from_index=origin, to_index=origin + 1)

    def prev_step(self) -> TransitionResult:
        """Step back by one; never validates and never touches form data."""

        origin = self._current_index
        if not self.can_go_previous():
            logger.debug("Cannot go previous: already at first step (%s)", origin)
            return TransitionResult.stay(TransitionOutcome.AT_BOUNDARY, origin)
        self._move_to(origin - 1)
        return TransitionResult(outcome=TransitionOutcome.RETREATED, from_index=origin, to_index=origin - 1)

    async def go_to_step(
        self,
        index: int,
        data: Mapping[str, Any],
        *,
        apply_guard: ApplyGuard = _always_apply,
    ) -> TransitionResult:
        """Jump to ``index``.

        Raises:
            ConfigurationError: if ``index`` is outside ``[0, len(steps) - 1]``.
        """

        if isinstance(index, bool) or not isinstance(index, int):
            raise ConfigurationError(f"Step index must be an int, got {index!r}")
        if not self.steps.contains_index(index):
            raise ConfigurationError(f"Step index {index} out of range (valid range: 0-{self.steps.last_index})")

        origin = self._current_index
        if index == origin:
            return TransitionResult.stay(TransitionOutcome.UNCHANGED, origin)

        if index < origin:
            self._move_to(index)
            return TransitionResult(outcome=TransitionOutcome.JUMPED, from_index=origin, to_index=index)

        if not self.is_step_unlocked(index):
            logger.info(
                "Rejected jump %s -> %s: furthest unlocked step is %s",
                origin,
                index,
                self._max_reached_index,
            )
            return TransitionResult.stay(TransitionOutcome.BLOCKED, origin)

        # Form state is shared, so steps that passed before may have been invalidated since.
        for position in range(origin, index):
            validation = await self.gate.run(self.steps[position], data)
            if not apply_guard():
                return TransitionResult.stay(TransitionOutcome.DISCARDED, origin)
            if not validation.passed:
                self._revoke_from(position)
                logger.info("Rejected jump %s -> %s: step %s no longer validates", origin, index, position)
                return TransitionResult.rejected(origin, validation)
            self._mark_validated(position)

        self._move_to(index)
        return TransitionResult(outcome=TransitionOutcome.JUMPED, from_index=origin, to_index=index)

    async def validate_current(self, data: Mapping[str, Any]) -> ValidationOutcome:
        """Run the gate for the active step without moving."""

        outcome = await self.gate.run(self.current_step, data)
        if outcome.passed:
            self._mark_validated(self._current_index)
        return outcome

    def _mark_validated(self, index: int) -> None:
        unlocked = min(index + 1, self.steps.last_index)
        if unlocked > self._max_reached_index:
            self._max_reached_index = unlocked

    def _revoke_from(self, index: int) -> None:
        self._max_reached_index = index

    def _move_to(self, new_index: int) -> None:
        if not self.steps.contains_index(new_index):
            raise ConfigurationError(f"Invalid step index: {new_index} (valid range: 0-{self.steps.last_index})")
        logger.debug("Navigation %s -> %s", self._current_index, new_index)
        self._current_index = new_index


__all__ = [
    "StepNavigator",
    "TransitionOutcome",
    "TransitionResult",
]
