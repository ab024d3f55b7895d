from __future__ import annotations

from datetime import datetime, timezone

# Time conversion constants
SECONDS_PER_MINUTE = 60
MINUTE_PER_HOUR = 60
HOUR_PER_DAY = 24
SECONDS_PER_HOUR = SECONDS_PER_MINUTE * MINUTE_PER_HOUR
SECONDS_PER_DAY = SECONDS_PER_HOUR * HOUR_PER_DAY


def format_time_ago(seconds: int) -> str:
    """Convert seconds to a human-readable time-ago string.

    Args:
        seconds: Number of seconds ago.

    Returns:
        Human-readable time string (e.g., "5m ago").
    """
    if seconds < SECONDS_PER_MINUTE:
        return f"{seconds}s ago"
    if seconds < SECONDS_PER_HOUR:
        minutes = seconds // SECONDS_PER_MINUTE
        return f"{minutes}m ago"
    if seconds < SECONDS_PER_DAY:
        hours = seconds // SECONDS_PER_HOUR
        return f"{hours}h ago"
    days = seconds // SECONDS_PER_DAY
    return f"{days}d ago"


def time_elapsed(then: datetime, now: datetime | None = None) -> str:
    """Describe how long ago `then` was, relative to `now` (defaults to current UTC time).

    Naive datetimes are treated as UTC. Future timestamps clamp to "0s ago".
    """
    if now is None:
        now = datetime.now(timezone.utc)
    if then.tzinfo is None:
        then = then.replace(tzinfo=timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    seconds = max(0, int((now - then).total_seconds()))
    return format_time_ago(seconds)


def parse_timestamp(value: str | None) -> datetime:
    """Parse a GitHub ISO-8601 timestamp ("2024-01-02T03:04:05Z").

    Args:
        value: The timestamp string; None or empty yields the Unix epoch.

    Returns:
        A timezone-aware datetime in UTC.
    """
    if not value:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
