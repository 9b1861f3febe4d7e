"""Custom exception types for wizard navigation, persistence and submission."""

from __future__ import annotations

from typing import Mapping

FORM_ERROR_KEY = "__form__"

GENERIC_FIELD_ERROR = "Please check this field."


class WizardError(Exception):
    """Base exception for multi-step form engine issues."""


class ConfigurationError(WizardError):
    """Raised for invalid wizard setup or out-of-range navigation targets."""


class StepValidationError(WizardError):
    """Raised (or returned) when a step's validation gate blocks a transition.

    Validators may raise this directly to report precise field-level messages;
    the gate also builds one when a validator resolves ``False``.
    """

    def __init__(
        self,
        message: str | None = None,
        *,
        field_errors: Mapping[str, str] | None = None,
        step_id: str | None = None,
    ) -> None:
        self.field_errors: dict[str, str] = dict(field_errors or {})
        self.step_id = step_id
        if message is None:
            label = f" '{step_id}'" if step_id else ""
            message = f"Validation failed for step{label}"
        super().__init__(message)


class PersistenceError(WizardError):
    """Raised by storage backends; the engine logs it and keeps running in memory."""

    def __init__(self, message: str, *, storage_key: str | None = None) -> None:
        super().__init__(message)
        self.storage_key = storage_key


class SubmissionError(WizardError):
    """Wraps a failure raised by the completion callback."""

    def __init__(self, cause: BaseException, message: str | None = None) -> None:
        super().__init__(message or f"Submission failed: {cause}")
        self.cause = cause


class InvalidTransitionError(WizardError):
    """Raised when the submission state machine is asked for an illegal move."""

    def __init__(self, source: str, target: str) -> None:
        super().__init__(f"Illegal submission transition {source!r} -> {target!r}")
        self.source = source
        self.target = target


__all__ = [
    "ConfigurationError",
    "FORM_ERROR_KEY",
    "GENERIC_FIELD_ERROR",
    "InvalidTransitionError",
    "PersistenceError",
    "StepValidationError",
    "SubmissionError",
    "WizardError",
]
