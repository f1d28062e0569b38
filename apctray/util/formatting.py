"""Formatting helpers for event lines and messages."""

from datetime import datetime

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


def format_duration(seconds: float) -> str:
    """Format seconds as ``MM:SS`` or ``H:MM:SS`` once an hour is reached."""
    total = max(0, round(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def format_timestamp(when: datetime) -> str:
    return when.strftime(TIMESTAMP_FORMAT)

