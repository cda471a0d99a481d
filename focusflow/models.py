"""
Data models for the FocusFlow productivity tracker.
Uses dataclasses for clean, type-annotated data structures.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional


class SessionType(Enum):
    """Kind of timer interval."""
    WORK = "WORK"
    SHORT_BREAK = "SHORT_BREAK"
    LONG_BREAK = "LONG_BREAK"

    @property
    def is_break(self) -> bool:
        return self is not SessionType.WORK

    @property
    def display_name(self) -> str:
        return {
            SessionType.WORK: "Focus session",
            SessionType.SHORT_BREAK: "Short break",
            SessionType.LONG_BREAK: "Long break",
        }[self]


class TimerPhase(Enum):
    """Possible run states of the timer state machine."""
    STOPPED = "STOPPED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"


class InsightType(Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    SUGGESTION = "suggestion"


class TimePeriod(Enum):
    """Preset analytics ranges, in days."""
    TODAY = ("Today", 1)
    WEEK = ("This Week", 7)
    MONTH = ("This Month", 30)
    THREE_MONTHS = ("3 Months", 90)
    YEAR = ("This Year", 365)

    def __init__(self, display_name: str, days: int):
        self.display_name = display_name
        self.days = days


DATE_FORMAT = "%Y-%m-%d"


def parse_record_date(value: Optional[str]) -> Optional[date]:
    """Parse a `YYYY-MM-DD` day key, returning None when it is malformed."""
    if not value:
        return None
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except (TypeError, ValueError):
        return None


@dataclass
class SessionRecord:
    """
    One completed-or-abandoned timer interval.

    `date` is the calendar-day key the interval belongs to and is kept
    independently from `start_time`, so legacy or offline rows without a
    start instant still bucket by day.
    """
    id: str = ""
    session_type: SessionType = SessionType.WORK
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    date: str = ""
    duration_minutes: int = 0
    is_completed: bool = False
    is_open: bool = True
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if self.duration_minutes < 0:
            self.duration_minutes = 0

    @property
    def day(self) -> "Optional[date]":
        return parse_record_date(self.date)

    @property
    def is_completed_work(self) -> bool:
        return self.is_completed and self.session_type is SessionType.WORK


@dataclass
class Preferences:
    """User timer preferences."""
    work_minutes: int = 25
    short_break_minutes: int = 5
    long_break_minutes: int = 15
    auto_start_breaks: bool = False
    auto_start_work: bool = False

    def __post_init__(self):
        # Negative durations are treated as zero-length intervals
        self.work_minutes = max(0, int(self.work_minutes))
        self.short_break_minutes = max(0, int(self.short_break_minutes))
        self.long_break_minutes = max(0, int(self.long_break_minutes))

    def minutes_for(self, session_type: SessionType) -> int:
        if session_type is SessionType.WORK:
            return self.work_minutes
        if session_type is SessionType.SHORT_BREAK:
            return self.short_break_minutes
        return self.long_break_minutes

    def seconds_for(self, session_type: SessionType) -> int:
        return self.minutes_for(session_type) * 60

    def auto_starts(self, session_type: SessionType) -> bool:
        """Whether an interval of this type starts on its own after the previous one."""
        if session_type is SessionType.WORK:
            return self.auto_start_work
        return self.auto_start_breaks


@dataclass(frozen=True)
class TimerState:
    """
    Read-only snapshot of the timer.
    Handed to listeners and the presentation layer.
    """
    phase: TimerPhase = TimerPhase.STOPPED
    current_session_type: SessionType = SessionType.WORK
    remaining_seconds: int = 0
    total_seconds: int = 0
    completed_work_count: int = 0

    @property
    def elapsed_seconds(self) -> int:
        """Calculate elapsed seconds in current interval."""
        return max(0, self.total_seconds - self.remaining_seconds)

    @property
    def progress_percentage(self) -> float:
        """Return progress as percentage (0-100)."""
        if self.total_seconds == 0:
            return 0.0
        return (self.elapsed_seconds / self.total_seconds) * 100.0

    def format_remaining(self) -> str:
        """Format remaining time as MM:SS."""
        minutes = self.remaining_seconds // 60
        seconds = self.remaining_seconds % 60
        return f"{minutes:02d}:{seconds:02d}"


@dataclass
class DailyStat:
    date: str
    day_name: str
    focus_minutes: int = 0
    session_count: int = 0
    is_today: bool = False
    is_weekend: bool = False


@dataclass
class WeeklyProgress:
    week_label: str
    focus_minutes: int = 0
    session_count: int = 0
    improvement_pct: float = 0.0


@dataclass(frozen=True)
class BestDay:
    date: str
    day_name: str
    minutes: int


@dataclass(frozen=True)
class Insight:
    message: str
    kind: InsightType
    category: str


@dataclass
class AnalyticsSnapshot:
    """
    Derived analytics for a date range.
    Recomputed on demand, never persisted.
    """
    start_date: str = ""
    end_date: str = ""
    total_focus_minutes: int = 0
    completed_sessions: int = 0
    skipped_sessions: int = 0
    total_break_minutes: int = 0
    current_streak_days: int = 0
    longest_streak_days: int = 0
    productivity_score: int = 0
    average_session_minutes: float = 0.0
    best_day: Optional[BestDay] = None
    daily_stats: List[DailyStat] = field(default_factory=list)
    weekly_progress: List[WeeklyProgress] = field(default_factory=list)
    session_type_breakdown: Dict[SessionType, int] = field(default_factory=dict)
    hourly_distribution: Dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class Quote:
    text: str
    author: str

    def __str__(self) -> str:
        return f'"{self.text}" - {self.author}'


FALLBACK_QUOTE = Quote(
    text="The secret of getting ahead is getting started.",
    author="Mark Twain",
)


def format_duration(minutes: int) -> str:
    """Format minutes as `Xh Ym`, or `Ym` below an hour."""
    hours, mins = divmod(max(0, int(minutes)), 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"
