"""Shared type aliases for the wizard package."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Mapping


FormData = dict[str, Any]
FieldErrors = dict[str, str]

# Validators may be plain predicates or coroutines; both receive a read-only view.
StepValidator = Callable[[Mapping[str, Any]], bool | Awaitable[bool]]
CompletionCallback = Callable[[FormData], Awaitable[None]]
StepChangeCallback = Callable[[int, FormData], None]


__all__ = [
    "CompletionCallback",
    "FieldErrors",
    "FormData",
    "StepChangeCallback",
    "StepValidator",
]
