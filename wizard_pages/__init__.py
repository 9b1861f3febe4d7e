"""Concrete wizard definitions built on the engine."""

from __future__ import annotations

from .partner import PARTNER_DEFAULTS, PARTNER_STEPS, build_partner_config

__all__ = ["PARTNER_DEFAULTS", "PARTNER_STEPS", "build_partner_config"]
