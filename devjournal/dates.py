"""Calendar-day and timestamp helpers for devjournal.

Every due/overdue/streak comparison happens at calendar-day granularity.
Parsing never raises: malformed or missing input resolves to ``None``.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, timedelta, timezone, tzinfo
from typing import Any, Iterable

logger = logging.getLogger(__name__)


def _fromisoformat(value: str) -> datetime | None:
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        logger.debug("Unparseable timestamp dropped: %r", value)
        return None


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes so comparisons never mix naive and aware."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


def to_calendar_day(timestamp: datetime | date, tz: tzinfo | None = None) -> date:
    """Truncate to the calendar day, in *tz* when the timestamp is aware."""
    if not isinstance(timestamp, datetime):
        return timestamp
    if tz is not None and timestamp.tzinfo is not None:
        return timestamp.astimezone(tz).date()
    return timestamp.date()


def parse_timestamp(value: Any) -> datetime | None:
    """Parse an ISO-8601 / RFC 3339 instant. Naive values are taken as UTC."""
    if isinstance(value, datetime):
        return as_utc(value)
    if not isinstance(value, str):
        return None
    parsed = _fromisoformat(value)
    return as_utc(parsed) if parsed is not None else None


def parse_calendar_day(value: Any, tz: tzinfo | None = None) -> date | None:
    """Parse ``YYYY-MM-DD`` or a full timestamp down to its calendar day."""
    if isinstance(value, datetime):
        return to_calendar_day(value, tz)
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if len(text) == 10:
        try:
            return date.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable calendar day dropped: %r", value)
            return None
    parsed = _fromisoformat(text)
    if parsed is None:
        return None
    return to_calendar_day(parsed, tz)


def format_duration(seconds: float) -> str:
    """Render seconds as ``MM:SS``, or ``HH:MM:SS`` from one hour up."""
    if not isinstance(seconds, (int, float)) or not math.isfinite(seconds):
        seconds = 0
    safe = max(0, int(math.floor(seconds)))
    hours, rest = divmod(safe, 3600)
    minutes, secs = divmod(rest, 60)
    if hours > 0:
        return f"{hours:02d}:{minutes:02d}:{secs:02d}"
    return f"{minutes:02d}:{secs:02d}"


def days_ago(today: date, n: int) -> date:
    return today - timedelta(days=n)


def in_window(day: date, today: date, days: int = 7) -> bool:
    """True if *day* falls in the inclusive window ``[today-(days-1), today]``."""
    return days_ago(today, days - 1) <= day <= today


def consecutive_days(days: Iterable[date], today: date) -> int:
    """Count consecutive days ending today, or yesterday if today is still open.

    A missing *today* does not break the streak; the walk simply starts one
    day earlier and stops at the first gap.
    """
    marked = set(days)
    anchor = today if today in marked else days_ago(today, 1)
    streak = 0
    while anchor in marked:
        streak += 1
        anchor = days_ago(anchor, 1)
    return streak
