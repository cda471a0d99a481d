"""
Streak calculation over session records.

A day qualifies for a streak when it holds at least one completed work
interval, keyed by the record's `date` field.
"""

from datetime import date, timedelta
from typing import Iterable, List, Set

from .models import SessionRecord

# How far back the current streak scan looks
STREAK_WINDOW_DAYS = 365


def qualifying_dates(records: Iterable[SessionRecord]) -> Set[date]:
    """Distinct days with a completed work interval. Malformed dates are skipped."""
    days = set()
    for record in records:
        if not record.is_completed_work:
            continue
        day = record.day
        if day is not None:
            days.add(day)
    return days


def current_streak(records: Iterable[SessionRecord], today: date) -> int:
    """
    Count consecutive qualifying days ending today.

    Today without a completed work interval does not break the streak, it
    just isn't counted yet. The scan stops at the first gap before today.
    """
    days = qualifying_dates(records)
    streak = 0
    for offset in range(STREAK_WINDOW_DAYS):
        if today - timedelta(days=offset) in days:
            streak += 1
        elif offset > 0:
            break
    return streak


def longest_streak(records: Iterable[SessionRecord]) -> int:
    """Longest run of consecutive qualifying days across the whole history."""
    ordered: List[date] = sorted(qualifying_dates(records))
    if not ordered:
        return 0

    longest = run = 1
    for previous, current in zip(ordered, ordered[1:]):
        if (current - previous).days == 1:
            run += 1
            longest = max(longest, run)
        else:
            run = 1
    return longest
