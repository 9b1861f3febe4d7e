"""Step-level validation gate run before every forward transition."""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from pydantic import ValidationError

from core.errors import FORM_ERROR_KEY, GENERIC_FIELD_ERROR, StepValidationError
from wizard.step_registry import StepDefinition
from wizard.types import FieldErrors

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of running a step's gate."""

    step_id: str
    passed: bool
    field_errors: FieldErrors = field(default_factory=dict)
    error: StepValidationError | None = None

    @classmethod
    def ok(cls, step_id: str) -> "ValidationOutcome":
        return cls(step_id=step_id, passed=True)

    @classmethod
    def blocked(cls, step_id: str, field_errors: FieldErrors, message: str | None = None) -> "ValidationOutcome":
        error = StepValidationError(message, field_errors=field_errors, step_id=step_id)
        return cls(step_id=step_id, passed=False, field_errors=dict(field_errors), error=error)


def schema_field_errors(step: StepDefinition, data: Mapping[str, Any]) -> FieldErrors:
    """Validate ``step``'s own fields against its pydantic schema.

    Only the first message per field is kept; errors without a location are
    reported under :data:`FORM_ERROR_KEY`.
    """

    if step.schema is None:
        return {}
    try:
        step.schema.model_validate(step.pick_fields(data))
    except ValidationError as exc:
        errors: FieldErrors = {}
        for entry in exc.errors():
            location = entry.get("loc") or ()
            key = str(location[0]) if location else FORM_ERROR_KEY
            errors.setdefault(key, str(entry.get("msg") or GENERIC_FIELD_ERROR))
        return errors
    return {}


def _generic_errors(step: StepDefinition) -> FieldErrors:
    if not step.field_keys:
        return {FORM_ERROR_KEY: GENERIC_FIELD_ERROR}
    return {key: GENERIC_FIELD_ERROR for key in sorted(step.field_keys)}


class ValidationGate:
    """Run a step's schema and predicate against the full form state.

    The predicate sees a read-only copy of *all* fields, since later-step
    values may already exist from an earlier session. A missing validator
    behaves like an always-true predicate. Exceptions other than
    :class:`StepValidationError` are treated as a rejection and logged.
    """

    async def run(self, step: StepDefinition, data: Mapping[str, Any]) -> ValidationOutcome:
        if not step.has_validation:
            return ValidationOutcome.ok(step.id)

        errors = schema_field_errors(step, data)
        if errors:
            logger.info("Step '%s' schema rejected fields: %s", step.id, sorted(errors))
            return ValidationOutcome.blocked(step.id, errors)

        if step.validate is None:
            return ValidationOutcome.ok(step.id)

        try:
            verdict = step.validate(data)
            if inspect.isawaitable(verdict):
                verdict = await verdict
        except StepValidationError as exc:
            field_errors = exc.field_errors or _generic_errors(step)
            logger.info("Step '%s' validator raised: %s", step.id, exc)
            return ValidationOutcome.blocked(step.id, field_errors, str(exc))
        except Exception as exc:
            logger.warning("Validator for step '%s' failed: %s", step.id, exc, exc_info=True)
            return ValidationOutcome.blocked(step.id, {FORM_ERROR_KEY: str(exc) or GENERIC_FIELD_ERROR})

        if verdict is True:
            return ValidationOutcome.ok(step.id)
        if verdict is not False:
            logger.warning(
                "Validator for step '%s' returned %r instead of a bool; treating it as a failure",
                step.id,
                verdict,
            )
        return ValidationOutcome.blocked(step.id, _generic_errors(step))


__all__ = ["ValidationGate", "ValidationOutcome", "schema_field_errors"]
