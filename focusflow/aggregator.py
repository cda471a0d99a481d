"""
Daily and weekly aggregation of session records.
"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from .models import (
    DATE_FORMAT, BestDay, DailyStat, SessionRecord, SessionType, WeeklyProgress
)


def iter_days(start: date, end: date):
    """Yield every calendar day in [start, end]."""
    day = start
    while day <= end:
        yield day
        day += timedelta(days=1)


def range_day_count(start: date, end: date) -> int:
    """Number of days in a closed range, never less than 1."""
    return max(1, (end - start).days + 1)


def daily_stats(records: Iterable[SessionRecord], start: date, end: date, today: date) -> List[DailyStat]:
    """
    One DailyStat per day in [start, end], zero-filled where nothing was recorded.

    focus_minutes sums completed work durations; session_count counts
    completed records of any type.
    """
    stats: Dict[date, DailyStat] = {}
    for day in iter_days(start, end):
        stats[day] = DailyStat(
            date=day.strftime(DATE_FORMAT),
            day_name=day.strftime("%A"),
            is_today=day == today,
            is_weekend=day.weekday() >= 5,
        )

    for record in records:
        stat = stats.get(record.day)
        if stat is None or not record.is_completed:
            continue
        stat.session_count += 1
        if record.session_type is SessionType.WORK:
            stat.focus_minutes += record.duration_minutes

    return [stats[day] for day in sorted(stats)]


def weekly_progress(records: Iterable[SessionRecord], start: date, end: date) -> List[WeeklyProgress]:
    """
    Monday-based weeks over [start, end].

    The first week begins at `start` itself and the last one is cut at
    `end`. improvement_pct compares focus minutes with the preceding week
    and is 0 when there is no preceding week or it had no focus time.
    """
    records = list(records)
    weeks: List[WeeklyProgress] = []
    previous_minutes: Optional[int] = None

    week_start = start
    while week_start <= end:
        monday = week_start - timedelta(days=week_start.weekday())
        week_end = min(monday + timedelta(days=6), end)

        focus = 0
        sessions = 0
        for record in records:
            day = record.day
            if day is None or not record.is_completed or not week_start <= day <= week_end:
                continue
            sessions += 1
            if record.session_type is SessionType.WORK:
                focus += record.duration_minutes

        improvement = 0.0
        if previous_minutes:
            improvement = (focus - previous_minutes) / previous_minutes * 100.0

        weeks.append(WeeklyProgress(
            week_label=f"{week_start.strftime('%b %d')} - {week_end.strftime('%b %d')}",
            focus_minutes=focus,
            session_count=sessions,
            improvement_pct=improvement,
        ))

        previous_minutes = focus
        week_start = week_end + timedelta(days=1)

    return weeks


def spans_multiple_weeks(start: date, end: date) -> bool:
    return (end - start).days > 7


def hourly_distribution(records: Iterable[SessionRecord]) -> Dict[int, int]:
    """Completed work intervals per hour of day. Records without a start time are left out."""
    hours = {hour: 0 for hour in range(24)}
    for record in records:
        if record.is_completed_work and record.start_time is not None:
            hours[record.start_time.hour] += 1
    return hours


def session_type_breakdown(records: Iterable[SessionRecord]) -> Dict[SessionType, int]:
    """Completed records per session type."""
    breakdown = {session_type: 0 for session_type in SessionType}
    for record in records:
        if record.is_completed:
            breakdown[record.session_type] += 1
    return breakdown


def best_day(stats: Iterable[DailyStat]) -> Optional[BestDay]:
    """First day with the most focus minutes, or None when there was no focus time."""
    best: Optional[DailyStat] = None
    for stat in stats:
        if best is None or stat.focus_minutes > best.focus_minutes:
            best = stat
    if best is None or best.focus_minutes <= 0:
        return None
    return BestDay(date=best.date, day_name=best.day_name, minutes=best.focus_minutes)
