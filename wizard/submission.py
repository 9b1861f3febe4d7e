from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Callable, Mapping

from core.errors import InvalidTransitionError, StepValidationError, SubmissionError
from wizard.types import CompletionCallback, FieldErrors, FormData
from wizard.validation import ValidationOutcome

logger = logging.getLogger(__name__)


class SubmissionStatus(StrEnum):
    """Possible submission states."""

    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    ERROR = "error"


_ALLOWED_TRANSITIONS: Mapping[SubmissionStatus, frozenset[SubmissionStatus]] = {
    SubmissionStatus.IDLE: frozenset({SubmissionStatus.SUBMITTING}),
    SubmissionStatus.SUBMITTING: frozenset({SubmissionStatus.SUCCESS, SubmissionStatus.ERROR}),
    SubmissionStatus.ERROR: frozenset({SubmissionStatus.SUBMITTING}),
    SubmissionStatus.SUCCESS: frozenset(),
}


class SubmissionOutcome(StrEnum):
    """How a ``submit_form`` call ended."""

    SUBMITTED = "submitted"
    FAILED = "failed"
    BLOCKED = "blocked"
    NOT_ON_LAST_STEP = "not_on_last_step"
    ALREADY_SUBMITTED = "already_submitted"
    IGNORED = "ignored"
    DISCARDED = "discarded"


@dataclass(frozen=True)
class SubmissionResult:
    """Outcome of a submission attempt."""

    outcome: SubmissionOutcome
    status: SubmissionStatus
    field_errors: FieldErrors = field(default_factory=dict)
    error: StepValidationError | SubmissionError | None = None
    submitted_data: FormData | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome is SubmissionOutcome.SUBMITTED


class SubmissionController:
    """Small state machine around the caller's completion callback.

    ``idle -> submitting -> success | error`` with ``error -> submitting`` for
    retries; ``success`` is terminal. The controller never touches form state
    or the cursor: on failure both stay exactly as they were.
    """

    def __init__(self, on_complete: CompletionCallback | None = None) -> None:
        self._on_complete = on_complete
        self._status = SubmissionStatus.IDLE
        self._last_error: SubmissionError | None = None

    @property
    def status(self) -> SubmissionStatus:
        return self._status

    @property
    def last_error(self) -> SubmissionError | None:
        return self._last_error

    @property
    def is_terminal(self) -> bool:
        return self._status is SubmissionStatus.SUCCESS

    def can_submit(self) -> bool:
        return SubmissionStatus.SUBMITTING in _ALLOWED_TRANSITIONS[self._status]

    def transition(self, target: SubmissionStatus) -> None:
        """Move to ``target`` or raise :class:`InvalidTransitionError`."""

        if target not in _ALLOWED_TRANSITIONS[self._status]:
            raise InvalidTransitionError(self._status.value, target.value)
        logger.debug("Submission status %s -> %s", self._status.value, target.value)
        self._status = target

    def reset(self) -> None:
        """Return to ``idle`` unless the terminal ``success`` state was reached."""

        if self.is_terminal:
            return
        self._status = SubmissionStatus.IDLE
        self._last_error = None

    def blocked(self, validation: ValidationOutcome) -> SubmissionResult:
        return SubmissionResult(
            outcome=SubmissionOutcome.BLOCKED,
            status=self._status,
            field_errors=dict(validation.field_errors),
            error=validation.error,
        )

    async def submit(
        self,
        data: FormData,
        *,
        apply_guard: Callable[[], bool] | None = None,
    ) -> SubmissionResult:
        """Run the completion callback with ``data`` (already validated)."""

        self.transition(SubmissionStatus.SUBMITTING)
        try:
            if self._on_complete is not None:
                await self._on_complete(data)
        except asyncio.CancelledError as exc:
            # Leave a retryable state behind before propagating the cancellation.
            self._last_error = SubmissionError(exc, "Submission was cancelled")
            self.transition(SubmissionStatus.ERROR)
            logger.info("Completion callback cancelled; submission can be retried")
            raise
        except Exception as exc:
            error = SubmissionError(exc)
            if apply_guard is not None and not apply_guard():
                logger.info("Discarding submission failure after teardown: %s", exc)
                return SubmissionResult(outcome=SubmissionOutcome.DISCARDED, status=self._status, error=error)
            logger.warning("Completion callback failed: %s", exc, exc_info=True)
            self._last_error = error
            self.transition(SubmissionStatus.ERROR)
            return SubmissionResult(outcome=SubmissionOutcome.FAILED, status=self._status, error=error)

        if apply_guard is not None and not apply_guard():
            logger.info("Discarding submission success after teardown")
            return SubmissionResult(outcome=SubmissionOutcome.DISCARDED, status=self._status, submitted_data=data)
        self._last_error = None
        self.transition(SubmissionStatus.SUCCESS)
        return SubmissionResult(outcome=SubmissionOutcome.SUBMITTED, status=self._status, submitted_data=data)

    def skipped(self, outcome: SubmissionOutcome, **extra: Any) -> SubmissionResult:
        return SubmissionResult(outcome=outcome, status=self._status, **extra)


__all__ = [
    "SubmissionController",
    "SubmissionOutcome",
    "SubmissionResult",
    "SubmissionStatus",
]
