"""Core package: error taxonomy shared by the wizard engine and its storage layer."""

from .errors import (
    ConfigurationError,
    InvalidTransitionError,
    PersistenceError,
    StepValidationError,
    SubmissionError,
    WizardError,
)

__all__ = [
    "ConfigurationError",
    "InvalidTransitionError",
    "PersistenceError",
    "StepValidationError",
    "SubmissionError",
    "WizardError",
]
