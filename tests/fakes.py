from datetime import datetime
from typing import Dict, List

from PySide6.QtCore import QEventLoop, QTimer

from focusflow.models import Preferences, SessionRecord
from focusflow.storage import PreferenceStore, SessionStore


class FakeStore(SessionStore, PreferenceStore):
    def __init__(self, preferences: Preferences = None) -> None:
        self.preferences = preferences or Preferences()
        self.rows: Dict[str, SessionRecord] = {}
        self.writes: List[tuple] = []
        self.fail = False

    def list_by_date_range(self, start_date, end_date) -> List[SessionRecord]:
        start, end = str(start_date), str(end_date)
        return [r for r in self.rows.values() if start <= r.date <= end]

    def list_undated(self) -> List[SessionRecord]:
        return [r for r in self.rows.values() if r.day is None]

    def upsert_open_interval(self, record: SessionRecord) -> None:
        self._write("upsert", record)

    def finalize(self, record: SessionRecord) -> None:
        self._write("finalize", record)

    def get_preferences(self) -> Preferences:
        return self.preferences

    def _write(self, op: str, record: SessionRecord) -> None:
        if self.fail:
            raise OSError("store offline")
        self.writes.append((op, record.id))
        self.rows[record.id] = record


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def run_now(job) -> None:
    job()


def spin(msecs: int, until=None) -> None:
    """Run the Qt event loop for `msecs`, or until `until` fires."""
    loop = QEventLoop()
    QTimer.singleShot(msecs, loop.quit)

    def stop(*args):
        loop.quit()

    if until is not None:
        until.connect(stop)
    loop.exec()
    if until is not None:
        until.disconnect(stop)
