"""Shared session-state and widget key constants."""
