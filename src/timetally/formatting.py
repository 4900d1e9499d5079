"""Human-readable rendering of durations and timestamps."""

from datetime import datetime, timedelta


def format_duration(duration: timedelta) -> str:
    """Format a duration as a human-readable string.

    Sub-second parts are truncated. Hours are not rolled into days.

    Args:
        duration: Duration to format

    Returns:
        Formatted string like "1h 21m 31s", "2m" or "0s"
    """
    seconds = int(duration.total_seconds())
    if seconds <= 0:
        return "0s"

    hours = seconds // 3600
    minutes = (seconds % 3600) // 60
    secs = seconds % 60

    parts = []
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    if secs > 0:
        parts.append(f"{secs}s")

    return " ".join(parts)


def format_timestamp(moment: datetime) -> str:
    """Format a timestamp in local time, e.g. "2024-03-01 09:15:00"."""
    return moment.astimezone().strftime("%Y-%m-%d %H:%M:%S")
