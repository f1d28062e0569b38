"""Utility helpers."""

from .formatting import format_duration, format_timestamp

__all__ = ["format_duration", "format_timestamp"]
