# Session lifecycle and productivity analytics core for FocusFlow
from .models import (
    AnalyticsSnapshot, Preferences, SessionRecord, SessionType, TimerPhase, TimerState
)
from .storage import SqliteStorage
from .recorder import SessionRecorder
from .timer_engine import TimerEngine
from .analytics import AnalyticsService, compute_snapshot
from .scoring import generate_insights

__all__ = [
    'AnalyticsSnapshot', 'Preferences', 'SessionRecord', 'SessionType', 'TimerPhase',
    'TimerState', 'SqliteStorage', 'SessionRecorder', 'TimerEngine', 'AnalyticsService',
    'compute_snapshot', 'generate_insights',
]
