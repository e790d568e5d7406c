"""Streak counter and activity calendar.

Both computations are pure and independent of each other: the calendar is
built from raw activity events only and never consults enrollments.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta

from ai_pulse.models.activity import ActivityEvent, CalendarDay
from ai_pulse.models.common import as_utc, utc_now
from ai_pulse.models.enrollment import Enrollment

DEFAULT_WINDOW_DAYS = 28


def streak(enrollment: Enrollment | None) -> int:
    """Number of distinct completed days on the user's current path.

    Counts completions, not consecutive calendar days.
    """
    if enrollment is None:
        return 0
    return len(enrollment.progress)


def activity_calendar(
    events: Iterable[ActivityEvent],
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: datetime | None = None,
) -> list[CalendarDay]:
    """Build the trailing activity heatmap, oldest day first.

    Args:
        events: Activity events of one user, in any order.
        window_days: Number of UTC calendar days ending today (inclusive).
        now: Reference time; defaults to the current UTC time.

    Returns:
        ``window_days`` buckets; a bucket is active if any event's UTC date
        falls on it.
    """
    assert window_days >= 1, f"window_days must be positive, got {window_days}"
    today = as_utc(now if now is not None else utc_now()).date()
    start = today - timedelta(days=window_days - 1)

    active_dates = {as_utc(event.created_at).date() for event in events}
    return [
        CalendarDay(date=day, is_active=day in active_dates)
        for day in (start + timedelta(days=offset) for offset in range(window_days))
    ]
