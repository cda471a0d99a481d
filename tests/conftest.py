from datetime import datetime

import pytest
from PySide6.QtCore import QCoreApplication

from fakes import FakeStore, FixedClock, run_now
from focusflow.models import Preferences
from focusflow.recorder import SessionRecorder
from focusflow.timer_engine import TimerEngine


@pytest.fixture(scope="session", autouse=True)
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 3, 9, 30))


@pytest.fixture
def store():
    return FakeStore(Preferences(work_minutes=1, short_break_minutes=1, long_break_minutes=2))


@pytest.fixture
def recorder(store, clock):
    return SessionRecorder(store, clock=clock, dispatch=run_now)


@pytest.fixture
def engine(recorder, store):
    timer = TimerEngine(recorder, store)
    yield timer
    timer.shutdown()
