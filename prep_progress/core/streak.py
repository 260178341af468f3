"""Day-streak arithmetic.

All inputs are calendar days; callers normalize timestamps with
``core.dates.to_local_date`` first. ``record_activity`` is the only transition
that changes a stored record; everything else is a read-only view.
"""

from collections import Counter
from collections.abc import Iterable
from datetime import date

from prep_progress.core.dates import days_between, trailing_days
from prep_progress.models.streak import (
    CalendarDay,
    StreakMilestone,
    StreakRecord,
    StreakStats,
    StreakStatus,
)

MILESTONES = (7, 14, 30, 50, 100, 365)
MILESTONE_STEP_AFTER_LAST = 30


def record_activity(record: StreakRecord | None, today: date) -> StreakRecord:
    """Apply one qualifying activity on *today* and return the new record.

    Counting is at most once per calendar day. Activity dated before the last
    practice day does not rewrite history and leaves the record unchanged.
    """
    if record is None or record.last_practice_date is None:
        return StreakRecord(
            current_streak=1,
            longest_streak=max(1, record.longest_streak if record else 0),
            total_practice_days=(record.total_practice_days if record else 0) + 1,
            last_practice_date=today,
            streak_start_date=today,
        )

    gap = days_between(today, record.last_practice_date)
    if gap <= 0:
        return record

    if gap == 1:
        current = record.current_streak + 1
        start = record.streak_start_date or today
    else:
        current = 1
        start = today

    return StreakRecord(
        current_streak=current,
        longest_streak=max(record.longest_streak, current),
        total_practice_days=record.total_practice_days + 1,
        last_practice_date=today,
        streak_start_date=start,
    )


def compute_streak_status(record: StreakRecord | None, today: date) -> StreakStats:
    """Display view of a stored record as of *today*; never mutates it."""
    if record is None or record.last_practice_date is None:
        return StreakStats(
            current_streak=0,
            longest_streak=record.longest_streak if record else 0,
            total_practice_days=record.total_practice_days if record else 0,
            last_practice_date=None,
            streak_start_date=None,
            status=StreakStatus.BROKEN,
            is_active_today=False,
        )

    gap = days_between(today, record.last_practice_date)
    if gap == 0:
        status = StreakStatus.ACTIVE
    elif gap == 1 or gap < 0:
        # A last practice day ahead of today was written from a later zone
        status = StreakStatus.AT_RISK
    else:
        status = StreakStatus.BROKEN

    broken = status == StreakStatus.BROKEN
    return StreakStats(
        # Stored value can be stale until the next write
        current_streak=0 if broken else record.current_streak,
        longest_streak=record.longest_streak,
        total_practice_days=record.total_practice_days,
        last_practice_date=record.last_practice_date,
        streak_start_date=None if broken else record.streak_start_date,
        status=status,
        is_active_today=status == StreakStatus.ACTIVE,
    )


def activity_intensity(count: int) -> int:
    return max(0, min(count, 3))


def compute_calendar(dates: Iterable[date], window_days: int, today: date) -> list[CalendarDay]:
    """Trailing *window_days* heatmap ending at *today*, oldest first.

    *dates* may repeat a day once per activity; repeats raise the day's
    ``activity_count``. A non-positive window yields an empty list.
    """
    if window_days is None or window_days < 1:
        return []
    counts = Counter(d for d in dates if d is not None)
    return [
        CalendarDay(
            date=day,
            has_activity=counts[day] > 0,
            activity_count=counts[day],
            intensity=activity_intensity(counts[day]),
        )
        for day in trailing_days(today, window_days)
    ]


def streak_milestone(current: int) -> StreakMilestone:
    """Next streak milestone above *current*."""
    current = max(current, 0)
    target = next((m for m in MILESTONES if m > current), None)
    if target is None:
        target = current + MILESTONE_STEP_AFTER_LAST
    return StreakMilestone(current=current, next=target, remaining=target - current)


def rebuild_streak(dates: Iterable[date], today: date | None = None) -> StreakRecord | None:
    """Reconstruct a record from raw activity days.

    Equivalent to applying ``record_activity`` to each distinct day in order.
    Days after *today* are ignored. Returns None when there is no activity.
    """
    record = None
    for day in sorted(set(dates)):
        if today is not None and day > today:
            break
        record = record_activity(record, day)
    return record
