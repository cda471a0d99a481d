#!/usr/bin/env python3
"""
FocusFlow - a Pomodoro session tracker with productivity analytics.

Runs the timer headless in a terminal and prints analytics reports:
- Work / short break / long break cycling with auto-start
- Partial progress saved every 30 seconds and on pause
- Streaks, daily/weekly rollups and a productivity score

Usage:
    pip install -e .
    python main.py run
    python main.py report --days 30
"""

import argparse
import logging
import os
import signal
import sys
from datetime import date, timedelta
from typing import Optional

from PySide6.QtCore import QCoreApplication, QTimer

from focusflow.analytics import AnalyticsService
from focusflow.models import SessionType, TimerState, format_duration
from focusflow.quotes import QuoteFetcher
from focusflow.recorder import SessionRecorder
from focusflow.scoring import generate_insights
from focusflow.storage import SessionStore, SqliteStorage
from focusflow.timer_engine import TimerEngine

logger = logging.getLogger("focusflow")


def setup_logging():
    """Configure logging from FOCUSFLOW_LOG_LEVEL (default INFO)."""
    level = os.environ.get("FOCUSFLOW_LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def setup_exception_handling():
    """Log unhandled exceptions before the default hook prints them."""
    def exception_hook(exctype, value, traceback):
        logger.critical("Unhandled exception: %s: %s", exctype.__name__, value)
        sys.__excepthook__(exctype, value, traceback)

    sys.excepthook = exception_hook


def setup_signal_handlers(app: QCoreApplication, engine: Optional[TimerEngine] = None):
    """Set up signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        logger.info("Received signal %s, shutting down...", signum)
        if engine is not None:
            engine.shutdown()
        app.quit()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    # Let the Python interpreter run periodically so signals are handled
    wakeup = QTimer(app)
    wakeup.start(250)
    wakeup.timeout.connect(lambda: None)


def completed_work_today(store: SessionStore, today: date) -> int:
    """Completed work intervals stored for today."""
    return sum(1 for record in store.list_by_date_range(today, today) if record.is_completed_work)


def run_timer(app: QCoreApplication, storage: SqliteStorage, resume_cadence: bool) -> int:
    """Run the timer until an interval ends without auto-start."""
    recorder = SessionRecorder(storage, parent=app)
    count = completed_work_today(storage, date.today()) if resume_cadence else 0
    engine = TimerEngine(recorder, storage, completed_work_count=count, parent=app)
    quotes = QuoteFetcher(parent=app)

    def on_state(state: TimerState):
        print(f"\r{state.current_session_type.display_name}: {state.format_remaining()} ",
              end="", flush=True)

    def maybe_quit():
        if engine.is_stopped and not engine.auto_start_pending:
            engine.shutdown()
            app.quit()

    def on_completed(finished: SessionType, upcoming: SessionType):
        print(f"\n{finished.display_name} completed! Next: {upcoming.display_name}")
        if finished is SessionType.WORK:
            quotes.fetch()
        else:
            QTimer.singleShot(0, maybe_quit)

    def on_quote(quote):
        print(quote)
        maybe_quit()

    engine.state_changed.connect(on_state)
    engine.interval_completed.connect(on_completed)
    quotes.quote_ready.connect(on_quote)
    recorder.save_failed.connect(lambda notice: print(f"\n{notice}"))

    setup_signal_handlers(app, engine)
    engine.start()
    result = app.exec()
    recorder.wait_for_writes()
    return result


def print_report(storage: SqliteStorage, days: int) -> int:
    """Print the analytics snapshot and insights for the last `days` days."""
    today = date.today()
    service = AnalyticsService(storage)
    snapshot = service.compute(today - timedelta(days=max(1, days) - 1), today)

    print(f"FocusFlow report {snapshot.start_date} .. {snapshot.end_date}")
    print(f"  Focus time:        {format_duration(snapshot.total_focus_minutes)}")
    print(f"  Completed:         {snapshot.completed_sessions} sessions")
    print(f"  Skipped:           {snapshot.skipped_sessions} sessions")
    print(f"  Current streak:    {snapshot.current_streak_days} days")
    print(f"  Longest streak:    {snapshot.longest_streak_days} days")
    print(f"  Productivity:      {snapshot.productivity_score}/100")
    if snapshot.best_day is not None:
        print(f"  Best day:          {snapshot.best_day.date} ({snapshot.best_day.minutes} min)")

    for week in snapshot.weekly_progress:
        print(f"  {week.week_label}: {format_duration(week.focus_minutes)} "
              f"({week.improvement_pct:+.0f}%)")

    for insight in generate_insights(snapshot):
        print(f"  * {insight.message}")
    return 0


def main(argv=None):
    """Main entry point for FocusFlow."""
    parser = argparse.ArgumentParser(prog="focusflow", description=__doc__.splitlines()[1])
    parser.add_argument("--db", help="Path to the SQLite database file")
    subcommands = parser.add_subparsers(dest="command")

    run_parser = subcommands.add_parser("run", help="Run the Pomodoro timer")
    run_parser.add_argument(
        "--resume-cadence", action="store_true",
        help="Count today's completed work sessions toward the next long break"
    )

    report_parser = subcommands.add_parser("report", help="Print productivity analytics")
    report_parser.add_argument("--days", type=int, default=7)

    args = parser.parse_args(argv)

    setup_logging()
    setup_exception_handling()

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("FocusFlow")
    app.setOrganizationName("FocusFlow")

    storage = SqliteStorage(args.db)

    if args.command == "report":
        return print_report(storage, args.days)
    return run_timer(app, storage, getattr(args, "resume_cadence", False))


if __name__ == "__main__":
    sys.exit(main())
