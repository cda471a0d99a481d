"""
Analytics snapshot assembly for FocusFlow.
Turns stored session records into streaks, daily/weekly stats and a
productivity score.
"""

import logging
from datetime import date, timedelta
from typing import Callable, Iterable, Optional, Tuple

from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal

from . import aggregator, scoring, streaks
from .models import DATE_FORMAT, AnalyticsSnapshot, SessionRecord, SessionType, TimePeriod
from .storage import SessionStore

logger = logging.getLogger(__name__)


def compute_snapshot(
    records: Iterable[SessionRecord],
    start: date,
    end: date,
    today: date,
    streak_records: Optional[Iterable[SessionRecord]] = None
) -> AnalyticsSnapshot:
    """
    Build the analytics snapshot for [start, end].

    Args:
        records: Records belonging to the range, in any order.
        start: First day of the range.
        end: Last day of the range.
        today: Reference day for streaks and `is_today` tagging.
        streak_records: Longer history for streaks. Defaults to `records`.

    Lifetime totals include records whose date cannot be parsed; the
    date-bucketed folds leave them out.
    """
    if end < start:
        start, end = end, start

    records = list(records)
    history = records if streak_records is None else list(streak_records)

    completed_work = [r for r in records if r.is_completed_work]
    skipped_work = [r for r in records if not r.is_completed and r.session_type is SessionType.WORK]
    completed_breaks = [r for r in records if r.is_completed and r.session_type.is_break]

    total_focus = sum(r.duration_minutes for r in completed_work)
    average = total_focus / len(completed_work) if completed_work else 0.0

    daily = aggregator.daily_stats(records, start, end, today)
    weekly = []
    if aggregator.spans_multiple_weeks(start, end):
        weekly = aggregator.weekly_progress(records, start, end)

    current = streaks.current_streak(history, today)
    longest = max(streaks.longest_streak(history), current)

    score = scoring.productivity_score(
        total_focus,
        len(completed_work),
        current,
        aggregator.range_day_count(start, end),
    )

    return AnalyticsSnapshot(
        start_date=start.strftime(DATE_FORMAT),
        end_date=end.strftime(DATE_FORMAT),
        total_focus_minutes=total_focus,
        completed_sessions=len(completed_work),
        skipped_sessions=len(skipped_work),
        total_break_minutes=sum(r.duration_minutes for r in completed_breaks),
        current_streak_days=current,
        longest_streak_days=longest,
        productivity_score=score,
        average_session_minutes=average,
        best_day=aggregator.best_day(daily),
        daily_stats=daily,
        weekly_progress=weekly,
        session_type_breakdown=aggregator.session_type_breakdown(records),
        hourly_distribution=aggregator.hourly_distribution(records),
    )


def period_range(period: TimePeriod, today: date) -> Tuple[date, date]:
    """Closed date range covering the last `period.days` days up to today."""
    return today - timedelta(days=period.days - 1), today


class AnalyticsService(QObject):
    """
    Computes snapshots from the session store off the UI thread.

    Requests are debounced; when a newer range is requested before an
    older computation finishes, the older result is dropped and only the
    latest one reaches `snapshot_ready`.

    Signals:
        snapshot_ready: Emitted with the AnalyticsSnapshot of the latest request
        failed: Emitted with an error message when the store could not be read
    """

    snapshot_ready = Signal(AnalyticsSnapshot)
    failed = Signal(str)
    _computed = Signal(int, object)

    DEBOUNCE_MS = 150

    def __init__(
        self,
        store: SessionStore,
        today: Optional[Callable[[], date]] = None,
        parent: Optional[QObject] = None
    ):
        super().__init__(parent)

        self.store = store
        self._today = today or date.today
        self._generation = 0
        self._requested: Optional[Tuple[date, date]] = None

        self._pool = QThreadPool(self)
        self._pool.setMaxThreadCount(1)

        self._debounce = QTimer(self)
        self._debounce.setSingleShot(True)
        self._debounce.setInterval(self.DEBOUNCE_MS)
        self._debounce.timeout.connect(self._run_latest)

        self._computed.connect(self._deliver)

    @property
    def generation(self) -> int:
        return self._generation

    def compute(self, start: date, end: date) -> AnalyticsSnapshot:
        """
        Synchronously compute a snapshot for [start, end].
        Records with an unreadable date key join the range so they still
        count toward the totals.
        """
        today = self._today()
        records = self.store.list_by_date_range(start, end)
        seen = {record.id for record in records}
        records.extend(r for r in self.store.list_undated() if r.id not in seen)
        history = self.store.list_by_date_range(
            today - timedelta(days=streaks.STREAK_WINDOW_DAYS), today
        )
        return compute_snapshot(records, start, end, today, streak_records=history)

    def request(self, start: date, end: date) -> int:
        """Ask for a snapshot; supersedes any request still in flight."""
        self._generation += 1
        self._requested = (start, end)
        self._debounce.start()
        return self._generation

    def request_period(self, period: TimePeriod) -> int:
        return self.request(*period_range(period, self._today()))

    def _run_latest(self):
        if self._requested is None:
            return
        generation = self._generation
        start, end = self._requested
        self._pool.start(lambda: self._compute_job(generation, start, end))

    def _compute_job(self, generation: int, start: date, end: date):
        try:
            snapshot = self.compute(start, end)
        except Exception as e:
            logger.error("Analytics computation for %s..%s failed: %s", start, end, e)
            self._computed.emit(generation, e)
            return
        self._computed.emit(generation, snapshot)

    def _deliver(self, generation: int, result):
        if generation != self._generation:
            logger.debug("Dropping superseded analytics result %d", generation)
            return
        if isinstance(result, Exception):
            self.failed.emit(str(result))
            return
        self.snapshot_ready.emit(result)
