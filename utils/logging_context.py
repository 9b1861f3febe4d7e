"""Log records tagged with the active wizard and step.

The engine binds ``wizard_id`` (its storage key) and ``wizard_step`` around
every transition; records emitted outside a transition carry ``-``.
"""

from __future__ import annotations

import contextvars
import logging
from contextlib import contextmanager
from typing import Iterator

LOG_FORMAT = "%(asctime)s %(levelname)s [wizard=%(wizard_id)s step=%(wizard_step)s] %(name)s: %(message)s"
_UNSET = "-"

_CONTEXT_VARS: dict[str, contextvars.ContextVar[str]] = {
    "wizard_id": contextvars.ContextVar("wizard_id", default=_UNSET),
    "wizard_step": contextvars.ContextVar("wizard_step", default=_UNSET),
}
_base_record_factory = logging.getLogRecordFactory()
_factory_installed = False


def _stamp(record: logging.LogRecord) -> None:
    for name, var in _CONTEXT_VARS.items():
        setattr(record, name, var.get())


class _WizardContextFilter(logging.Filter):
    """Stamp wizard fields on records created before the factory was installed."""

    def filter(self, record: logging.LogRecord) -> bool:
        _stamp(record)
        return True


def _normalise(value: str | None) -> str:
    return (value or "").strip() or _UNSET


def _wizard_record_factory(*args: object, **kwargs: object) -> logging.LogRecord:
    record = _base_record_factory(*args, **kwargs)
    _stamp(record)
    return record


def configure_logging(*, level: int = logging.INFO) -> None:
    """Set up root logging so every record renders with :data:`LOG_FORMAT`.

    Safe to call repeatedly (Streamlit reruns the app script on each
    interaction); handlers, filter and record factory are installed once.
    """

    global _factory_installed
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
    else:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    for handler in root.handlers:
        if handler.formatter is None:
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
    if not any(isinstance(existing, _WizardContextFilter) for existing in root.filters):
        root.addFilter(_WizardContextFilter())
    if not _factory_installed:
        logging.setLogRecordFactory(_wizard_record_factory)
        _factory_installed = True


def set_wizard_id(wizard_id: str | None) -> None:
    _CONTEXT_VARS["wizard_id"].set(_normalise(wizard_id))


def set_wizard_step(step: str | None) -> None:
    _CONTEXT_VARS["wizard_step"].set(_normalise(step))


def current_context() -> dict[str, str]:
    """Return the wizard fields that the next log record would carry."""

    return {name: var.get() for name, var in _CONTEXT_VARS.items()}


@contextmanager
def log_context(*, wizard_id: str | None = None, wizard_step: str | None = None) -> Iterator[None]:
    """Bind wizard fields for the duration of the block; ``None`` leaves a field as is."""

    overrides = {"wizard_id": wizard_id, "wizard_step": wizard_step}
    tokens = [
        (_CONTEXT_VARS[name], _CONTEXT_VARS[name].set(_normalise(value)))
        for name, value in overrides.items()
        if value is not None
    ]
    try:
        yield
    finally:
        for var, token in reversed(tokens):
            var.reset(token)


__all__ = [
    "LOG_FORMAT",
    "configure_logging",
    "current_context",
    "log_context",
    "set_wizard_id",
    "set_wizard_step",
]
