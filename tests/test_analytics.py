from datetime import date, datetime

from fakes import spin
from focusflow.analytics import AnalyticsService, compute_snapshot, period_range
from focusflow.models import SessionRecord, SessionType, TimePeriod
from focusflow.storage import SqliteStorage


def work(day: str, minutes: int = 25, completed: bool = True, hour: int = 9) -> SessionRecord:
    start = None
    if day[:4].isdigit():
        start = datetime.strptime(day, "%Y-%m-%d").replace(hour=hour)
    return SessionRecord(id=f"{day}-{minutes}-{hour}", session_type=SessionType.WORK, date=day,
                         start_time=start, duration_minutes=minutes,
                         is_completed=completed, is_open=False)


def test_snapshot_combines_all_metrics() -> None:
    records = [
        work("2024-03-01", 25),
        work("2024-03-02", 50, hour=14),
        work("2024-03-03", 25),
        work("2024-03-03", 10, completed=False),
        SessionRecord(id="b", session_type=SessionType.SHORT_BREAK, date="2024-03-03",
                      duration_minutes=5, is_completed=True, is_open=False),
    ]

    snapshot = compute_snapshot(records, date(2024, 3, 1), date(2024, 3, 3), today=date(2024, 3, 3))

    assert snapshot.total_focus_minutes == 100
    assert snapshot.completed_sessions == 3
    assert snapshot.skipped_sessions == 1
    assert snapshot.total_break_minutes == 5
    assert snapshot.current_streak_days == 3
    assert snapshot.longest_streak_days == 3
    assert round(snapshot.average_session_minutes, 2) == 33.33
    assert snapshot.best_day.date == "2024-03-02"
    assert snapshot.hourly_distribution[9] == 2
    assert snapshot.hourly_distribution[14] == 1
    assert snapshot.session_type_breakdown[SessionType.SHORT_BREAK] == 1
    assert snapshot.weekly_progress == []
    # daily average 33 -> 11, 3 sessions -> 6, 3 day streak -> 9
    assert snapshot.productivity_score == 26


def test_unparseable_dates_count_only_in_lifetime_totals() -> None:
    records = [work("2024-03-01", 25), work("garbage", 40)]

    snapshot = compute_snapshot(records, date(2024, 3, 1), date(2024, 3, 1), today=date(2024, 3, 1))

    assert snapshot.total_focus_minutes == 65
    assert snapshot.daily_stats[0].focus_minutes == 25
    assert snapshot.longest_streak_days == 1


def test_empty_range_yields_zeroes() -> None:
    snapshot = compute_snapshot([], date(2024, 3, 1), date(2024, 3, 14), today=date(2024, 3, 14))

    assert snapshot.productivity_score == 0
    assert snapshot.average_session_minutes == 0.0
    assert len(snapshot.daily_stats) == 14
    # Fri 1st .. Sun 3rd, then two Monday-based weeks
    assert [w.improvement_pct for w in snapshot.weekly_progress] == [0.0, 0.0, 0.0]
    assert snapshot.best_day is None


def test_streaks_use_longer_history_when_given() -> None:
    history = [work("2024-02-27"), work("2024-02-28"), work("2024-02-29"), work("2024-03-01")]
    in_range = [work("2024-03-01")]

    snapshot = compute_snapshot(in_range, date(2024, 3, 1), date(2024, 3, 1),
                                today=date(2024, 3, 1), streak_records=history)

    assert snapshot.current_streak_days == 4


def test_period_range_is_inclusive_of_today() -> None:
    assert period_range(TimePeriod.WEEK, date(2024, 3, 7)) == (date(2024, 3, 1), date(2024, 3, 7))
    assert period_range(TimePeriod.TODAY, date(2024, 3, 7)) == (date(2024, 3, 7), date(2024, 3, 7))


def test_service_computes_from_store(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    for record in (work("2024-03-05"), work("2024-03-06"), work("2024-02-01")):
        storage.finalize(record)

    service = AnalyticsService(storage, today=lambda: date(2024, 3, 6))
    snapshot = service.compute(date(2024, 3, 1), date(2024, 3, 6))

    assert snapshot.completed_sessions == 2
    assert snapshot.current_streak_days == 2
    assert len(snapshot.daily_stats) == 6


def test_service_drops_superseded_results(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    service = AnalyticsService(storage, today=lambda: date(2024, 3, 6))
    delivered = []
    service.snapshot_ready.connect(delivered.append)

    first = service.request(date(2024, 3, 1), date(2024, 3, 6))
    latest = service.request(date(2024, 2, 1), date(2024, 3, 6))

    stale = service.compute(date(2024, 3, 1), date(2024, 3, 6))
    fresh = service.compute(date(2024, 2, 1), date(2024, 3, 6))
    service._deliver(first, stale)
    service._deliver(latest, fresh)

    assert delivered == [fresh]


def test_service_reports_store_failures(tmp_path) -> None:
    service = AnalyticsService(SqliteStorage(str(tmp_path / "focusflow.db")))
    errors = []
    service.failed.connect(errors.append)

    generation = service.request(date(2024, 3, 1), date(2024, 3, 6))
    service._deliver(generation, OSError("disk gone"))

    assert errors == ["disk gone"]


def test_service_counts_undated_records_in_totals(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    storage.finalize(work("2024-03-01", 25))
    storage.finalize(work("garbage", 40))

    service = AnalyticsService(storage, today=lambda: date(2024, 3, 1))
    snapshot = service.compute(date(2024, 3, 1), date(2024, 3, 1))

    assert snapshot.total_focus_minutes == 65
    assert snapshot.completed_sessions == 2
    assert snapshot.daily_stats[0].focus_minutes == 25


def test_only_latest_request_reaches_listeners(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    storage.finalize(work("2024-02-10"))
    storage.finalize(work("2024-03-05"))
    service = AnalyticsService(storage, today=lambda: date(2024, 3, 6))
    delivered = []
    service.snapshot_ready.connect(delivered.append)

    service.request(date(2024, 3, 1), date(2024, 3, 6))
    service.request(date(2024, 2, 1), date(2024, 3, 6))
    spin(5000, until=service.snapshot_ready)
    # Give a stray second delivery the chance to show up
    spin(service.DEBOUNCE_MS * 2)

    assert len(delivered) == 1
    assert delivered[0].start_date == "2024-02-01"
    assert delivered[0].completed_sessions == 2
