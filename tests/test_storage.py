import csv
from datetime import datetime
import sqlite3

from focusflow.models import Preferences, SessionRecord, SessionType
from focusflow.storage import SqliteStorage, get_app_data_dir


def make_record(record_id: str, day: str = "2024-03-01", **kwargs) -> SessionRecord:
    values = dict(id=record_id, session_type=SessionType.WORK, date=day,
                  start_time=datetime(2024, 3, 1, 9, 0), duration_minutes=10)
    values.update(kwargs)
    return SessionRecord(**values)


def test_upsert_then_finalize_keeps_one_row(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))

    storage.upsert_open_interval(make_record("a", duration_minutes=1))
    storage.upsert_open_interval(make_record("a", duration_minutes=2))
    storage.finalize(make_record("a", duration_minutes=25, is_completed=True))

    rows = storage.list_all()
    assert len(rows) == 1
    assert rows[0].duration_minutes == 25
    assert rows[0].is_completed is True
    assert rows[0].is_open is False
    assert rows[0].start_time == datetime(2024, 3, 1, 9, 0)


def test_list_by_date_range_is_inclusive(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    for record_id, day in (("a", "2024-02-29"), ("b", "2024-03-01"), ("c", "2024-03-03"), ("d", "2024-03-04")):
        storage.finalize(make_record(record_id, day))

    rows = storage.list_by_date_range("2024-03-01", "2024-03-03")

    assert [r.id for r in rows] == ["b", "c"]


def test_get_open_interval(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    storage.finalize(make_record("done"))
    storage.upsert_open_interval(make_record("open", session_type=SessionType.SHORT_BREAK))

    open_record = storage.get_open_interval("2024-03-01")

    assert open_record.id == "open"
    assert open_record.session_type is SessionType.SHORT_BREAK
    assert storage.get_open_interval("2024-03-02") is None


def test_missing_start_time_round_trips_as_none(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    storage.finalize(make_record("legacy", start_time=None))

    assert storage.get_session("legacy").start_time is None


def test_preferences_default_and_save(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))

    assert storage.get_preferences() == Preferences()

    storage.save_preferences(Preferences(work_minutes=50, auto_start_breaks=True))
    prefs = storage.get_preferences()

    assert prefs.work_minutes == 50
    assert prefs.short_break_minutes == 5
    assert prefs.auto_start_breaks is True
    assert prefs.auto_start_work is False


def test_negative_preference_is_clamped() -> None:
    assert Preferences(work_minutes=-5).work_minutes == 0


def test_export_to_csv(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    storage.finalize(make_record("a", is_completed=True))
    target = tmp_path / "sessions.csv"

    exported = storage.export_to_csv(str(target), "2024-03-01", "2024-03-01")

    with open(target, newline="", encoding="utf-8") as f:
        rows = list(csv.reader(f))
    assert exported == 1
    assert rows[1][1] == "WORK"
    assert rows[1][6] == "Yes"


def test_data_dir_override(tmp_path, monkeypatch) -> None:
    monkeypatch.setenv("FOCUSFLOW_DATA_DIR", str(tmp_path / "data"))

    assert get_app_data_dir() == tmp_path / "data"
    assert (tmp_path / "data").is_dir()


def test_unknown_session_type_rows_are_skipped(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    storage.finalize(make_record("a", is_completed=True))
    storage.finalize(make_record("b", is_completed=True))

    with sqlite3.connect(storage.db_path) as conn:
        conn.execute("UPDATE sessions SET session_type = 'MEDITATION' WHERE id = 'b'")

    records = storage.list_by_date_range("2024-03-01", "2024-03-01")

    assert [r.id for r in records] == ["a"]
    assert storage.get_session("b") is None


def test_list_undated_returns_only_malformed_dates(tmp_path) -> None:
    storage = SqliteStorage(str(tmp_path / "focusflow.db"))
    storage.finalize(make_record("good"))
    storage.finalize(make_record("blank", day="garbage"))
    storage.finalize(make_record("bad-month", day="2024-13-01"))

    assert sorted(r.id for r in storage.list_undated()) == ["bad-month", "blank"]
