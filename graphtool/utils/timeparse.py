"""Time parsing helpers for invite and availability actions."""

from datetime import datetime, timedelta, timezone


def parse_flexible_time(value: str) -> datetime:
    """
    Parse RFC 3339 ("2026-01-15T14:00:00Z") or the PowerShell sortable format
    ("2026-01-15T14:00:00", assumed UTC). Returns an aware datetime.
    """
    if not value:
        raise ValueError("time string is empty")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValueError(
            "invalid time format (expected RFC3339 like '2026-01-15T14:00:00Z' "
            "or PowerShell sortable like '2026-01-15T14:00:00')"
        ) from None
    if "T" not in text:
        raise ValueError("invalid time format: a time of day is required")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def add_working_days(start: datetime, days: int) -> datetime:
    """Add ``days`` Monday-Friday days to ``start``; non-positive values return it unchanged."""
    result = start
    added = 0
    while added < days:
        result += timedelta(days=1)
        if result.weekday() < 5:
            added += 1
    return result


def format_rfc3339(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
