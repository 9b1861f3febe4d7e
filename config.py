"""Central configuration for the multi-step form engine.

Values are read once from the environment (after loading an optional ``.env``
file) and exposed as module-level constants. ``WizardConfig`` falls back to
these when a caller does not pass explicit values, so a deployment can switch
persistence on or move the snapshot directory without touching code.

``WIZARD_AUTOSAVE_DEBOUNCE`` controls how long field edits are coalesced
before a snapshot is written; ``WIZARD_LOG_LEVEL`` accepts the usual
``logging`` level names.
"""

import logging
import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


logger = logging.getLogger(__name__)


_TRUTHY_ENV_VALUES: tuple[str, ...] = ("1", "true", "yes", "on")

DEFAULT_STORAGE_KEY_FALLBACK = "multistep-form"
DEFAULT_AUTOSAVE_DEBOUNCE = 0.5
DEFAULT_STORAGE_DIR = Path.home() / ".cache" / "multistep-forms"


def _is_truthy_flag(value: str | None) -> bool:
    """Return ``True`` when ``value`` matches a truthy environment token."""

    if value is None:
        return False
    return value.strip().lower() in _TRUTHY_ENV_VALUES


def _parse_non_negative_float_env(value: str | None, *, env_var: str, default: float) -> float:
    """Return a non-negative float parsed from ``value`` or ``default``."""

    if value is None or not value.strip():
        return default
    try:
        parsed = float(value.strip())
    except ValueError:
        logger.warning("Invalid %s=%r; falling back to %s", env_var, value, default)
        return default
    if parsed < 0:
        logger.warning("%s must be >= 0 (got %s); falling back to %s", env_var, parsed, default)
        return default
    return parsed


def _parse_log_level(value: str | None) -> int:
    if not value:
        return logging.INFO
    candidate = value.strip().upper()
    level = logging.getLevelName(candidate)
    if isinstance(level, int):
        return level
    logger.warning("Unknown WIZARD_LOG_LEVEL %r; using INFO", value)
    return logging.INFO


PERSIST_STATE_DEFAULT = _is_truthy_flag(os.getenv("WIZARD_PERSIST_STATE"))
DEFAULT_STORAGE_KEY = (os.getenv("WIZARD_STORAGE_KEY") or "").strip() or DEFAULT_STORAGE_KEY_FALLBACK
STORAGE_DIR = Path(os.getenv("WIZARD_STORAGE_DIR") or DEFAULT_STORAGE_DIR).expanduser()
AUTOSAVE_DEBOUNCE_SECONDS = _parse_non_negative_float_env(
    os.getenv("WIZARD_AUTOSAVE_DEBOUNCE"),
    env_var="WIZARD_AUTOSAVE_DEBOUNCE",
    default=DEFAULT_AUTOSAVE_DEBOUNCE,
)
LOG_LEVEL = _parse_log_level(os.getenv("WIZARD_LOG_LEVEL"))


__all__ = [
    "AUTOSAVE_DEBOUNCE_SECONDS",
    "DEFAULT_STORAGE_KEY",
    "LOG_LEVEL",
    "PERSIST_STATE_DEFAULT",
    "STORAGE_DIR",
]
