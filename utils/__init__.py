"""Utility helpers for logging context and telemetry."""
