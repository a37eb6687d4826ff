"""Date manipulation utilities"""

from datetime import date, datetime, timezone
from typing import Any, Callable, Optional

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: timezone-aware current UTC time"""
    return datetime.now(timezone.utc)


def calendar_date(value: Any) -> Optional[date]:
    """
    Reduce a date, datetime or ISO string to its calendar date.

    Empty strings and None map to None (an absent window bound).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    # "2026-10-19", "2026-10-19T08:30:00", "2026-10-19T08:30:00Z"
    return date.fromisoformat(text[:10])


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp from the server; naive values are taken as UTC"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        parsed = datetime(value.year, value.month, value.day)
    else:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
