"""Formatting utilities for CLI output."""

from datetime import datetime, timezone

_UNITS = [
    (86400, "day"),
    (3600, "hour"),
    (60, "minute"),
]


def format_time_ago(timestamp_str: str | None, now: datetime | None = None) -> str:
    """Format an ISO timestamp as relative time (e.g. '2 hours ago').

    Args:
        timestamp_str: ISO 8601 timestamp string (with or without 'Z' suffix).
        now: Reference time (defaults to the current UTC time).

    Returns:
        Human-readable relative time, "Just now", or "Never" for None.
    """
    if not timestamp_str:
        return "Never"

    ts = datetime.fromisoformat(timestamp_str.replace("Z", "+00:00"))
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    seconds = (now - ts).total_seconds()

    for size, unit in _UNITS:
        if seconds >= size:
            count = int(seconds // size)
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "Just now"


def mask_secret(value: str | None) -> str:
    """Hide a configured secret, keeping only whether it is set."""
    if not value:
        return "(not set)"
    return "********"
