"""Multi-step form engine package."""

from __future__ import annotations

from .engine import MultiStepFormEngine, WizardConfig
from .form_state import FormState
from .navigation.router import StepNavigator, TransitionOutcome, TransitionResult
from .step_registry import StepDefinition, StepRegistry
from .submission import SubmissionController, SubmissionOutcome, SubmissionResult, SubmissionStatus
from .validation import ValidationGate, ValidationOutcome

__all__ = [
    "FormState",
    "MultiStepFormEngine",
    "StepDefinition",
    "StepNavigator",
    "StepRegistry",
    "SubmissionController",
    "SubmissionOutcome",
    "SubmissionResult",
    "SubmissionStatus",
    "TransitionOutcome",
    "TransitionResult",
    "ValidationGate",
    "ValidationOutcome",
    "WizardConfig",
]
