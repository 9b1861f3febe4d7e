"""Navigation helpers for the wizard engine."""

from __future__ import annotations

from wizard.navigation.keys import WizardSessionKeys
from wizard.navigation.router import StepNavigator, TransitionOutcome, TransitionResult

__all__ = [
    "StepNavigator",
    "TransitionOutcome",
    "TransitionResult",
    "WizardSessionKeys",
]
