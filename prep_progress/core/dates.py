"""Calendar-day normalization.

Every streak and schedule comparison works on local calendar days. Stored
timestamps are naive UTC, so a naive ``datetime`` is read as UTC before being
moved into the configured zone; this keeps two submissions at 23:30 and 00:10
local time on different days, and two submissions on the same local day from
different devices on the same day.
"""

from datetime import date, datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from prep_progress.config import settings


def resolve_timezone(tz: str | ZoneInfo | None = None) -> ZoneInfo:
    if isinstance(tz, ZoneInfo):
        return tz
    return ZoneInfo(tz or settings.timezone)


def to_local_date(value: date | datetime | str, tz: str | ZoneInfo | None = None) -> date:
    """Normalize a date, datetime or ISO string to a calendar day in *tz*."""
    if isinstance(value, str):
        # A bare YYYY-MM-DD is already a calendar day
        value = date.fromisoformat(value) if len(value) == 10 else datetime.fromisoformat(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(resolve_timezone(tz)).date()
    return value


def local_today(tz: str | ZoneInfo | None = None) -> date:
    return datetime.now(resolve_timezone(tz)).date()


def days_between(later: date, earlier: date) -> int:
    """Whole calendar days from *earlier* to *later* (negative if reversed)."""
    return (later - earlier).days


def trailing_days(today: date, window_days: int) -> list[date]:
    """The *window_days* calendar days ending at *today*, oldest first."""
    return [today - timedelta(days=offset) for offset in range(window_days - 1, -1, -1)]
