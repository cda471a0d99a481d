"""
Timer engine for FocusFlow.
Implements the work/break state machine driven by a 1 Hz tick.
"""

import logging
import threading
from dataclasses import replace
from typing import Optional

from PySide6.QtCore import QObject, QTimer, Signal

from .models import Preferences, SessionType, TimerPhase, TimerState
from .recorder import SessionRecorder
from .storage import PreferenceStore

logger = logging.getLogger(__name__)


def next_session_type(finished: SessionType, completed_work_count: int) -> SessionType:
    """
    Pick the interval that follows `finished`.

    After every 4th completed work interval a long break is due, after any
    other work interval a short break; every break is followed by work.
    """
    if finished is SessionType.WORK:
        if completed_work_count > 0 and completed_work_count % TimerEngine.LONG_BREAK_EVERY == 0:
            return SessionType.LONG_BREAK
        return SessionType.SHORT_BREAK
    return SessionType.WORK


class TimerEngine(QObject):
    """
    Core timer engine implementing a state machine.

    Phases:
        STOPPED: Interval loaded but not counting down
        RUNNING: Counting down, one tick per second
        PAUSED: Countdown suspended, progress saved as partial

    Signals:
        state_changed: Emitted on every tick and transition with a TimerState snapshot
        phase_changed: Emitted when the phase changes (old_phase, new_phase)
        interval_completed: Emitted when an interval finishes (finished_type, next_type)
        interval_skipped: Emitted when an interval is skipped (skipped_type, next_type)

    All mutation goes through the public control methods, which are
    serialized by a re-entrant lock. Calls that make no sense in the
    current phase are ignored.
    """

    state_changed = Signal(TimerState)
    phase_changed = Signal(TimerPhase, TimerPhase)
    interval_completed = Signal(SessionType, SessionType)
    interval_skipped = Signal(SessionType, SessionType)

    TICK_INTERVAL_MS = 1000
    SAVE_EVERY_SECONDS = 30
    AUTO_START_DELAY_MS = 2000
    LONG_BREAK_EVERY = 4

    def __init__(
        self,
        recorder: SessionRecorder,
        preferences: PreferenceStore,
        completed_work_count: int = 0,
        parent: Optional[QObject] = None
    ):
        """
        Initialize the timer engine.

        Args:
            recorder: Recorder persisting interval progress.
            preferences: Store providing work/break durations and auto-start flags.
            completed_work_count: Starting value of the long-break cadence counter.
            parent: Optional Qt parent object.
        """
        super().__init__(parent)

        self.recorder = recorder
        self.preferences = preferences

        self._lock = threading.RLock()

        prefs = self._load_preferences()
        total = prefs.seconds_for(SessionType.WORK)
        self._state = TimerState(
            phase=TimerPhase.STOPPED,
            current_session_type=SessionType.WORK,
            remaining_seconds=total,
            total_seconds=total,
            completed_work_count=max(0, completed_work_count),
        )

        # 1 Hz tick source
        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(self.TICK_INTERVAL_MS)
        self._qt_timer.timeout.connect(self.tick)

        # Delayed auto-start of the next interval
        self._auto_start_timer = QTimer(self)
        self._auto_start_timer.setSingleShot(True)
        self._auto_start_timer.setInterval(self.AUTO_START_DELAY_MS)
        self._auto_start_timer.timeout.connect(self._on_auto_start)

    @property
    def state(self) -> TimerState:
        """Get a consistent snapshot of the timer."""
        with self._lock:
            return self._state

    @property
    def phase(self) -> TimerPhase:
        return self.state.phase

    @property
    def is_running(self) -> bool:
        return self.state.phase is TimerPhase.RUNNING

    @property
    def is_paused(self) -> bool:
        return self.state.phase is TimerPhase.PAUSED

    @property
    def is_stopped(self) -> bool:
        return self.state.phase is TimerPhase.STOPPED

    @property
    def auto_start_pending(self) -> bool:
        return self._auto_start_timer.isActive()

    # ==================== Controls ====================

    def start(self):
        """Start or resume the current interval."""
        with self._lock:
            if self._state.phase is TimerPhase.RUNNING:
                return

            self._auto_start_timer.stop()

            if self._state.remaining_seconds == 0:
                total = self._load_preferences().seconds_for(self._state.current_session_type)
                self._state = replace(self._state, remaining_seconds=total, total_seconds=total)

            self.recorder.open_interval(self._state.current_session_type)
            self._set_phase(TimerPhase.RUNNING)

            if self._state.total_seconds == 0:
                # Zero-length interval from a misconfigured preference
                self._complete_locked()
                return

            self._qt_timer.start()
            self.state_changed.emit(self._state)

    def pause(self):
        """Pause the running interval and save its partial progress."""
        with self._lock:
            if self._state.phase is not TimerPhase.RUNNING:
                return

            self._qt_timer.stop()
            self._set_phase(TimerPhase.PAUSED)
            self.recorder.save_progress(
                self._state.current_session_type,
                self._state.elapsed_seconds,
                completed=False
            )
            self.state_changed.emit(self._state)

    def tick(self):
        """Advance the countdown by one second."""
        with self._lock:
            if self._state.phase is not TimerPhase.RUNNING:
                return

            if self._state.remaining_seconds > 0:
                self._state = replace(self._state, remaining_seconds=self._state.remaining_seconds - 1)

            if self._state.remaining_seconds <= 0:
                self.state_changed.emit(self._state)
                self._complete_locked()
                return

            if self._state.elapsed_seconds % self.SAVE_EVERY_SECONDS == 0:
                self.recorder.save_progress(
                    self._state.current_session_type,
                    self._state.elapsed_seconds,
                    completed=False
                )

            self.state_changed.emit(self._state)

    def complete(self):
        """Finish the current interval now, recording the elapsed portion as completed."""
        with self._lock:
            if self._state.phase is TimerPhase.STOPPED:
                return
            self._complete_locked()

    def skip(self):
        """
        Abandon the current interval and move on to the next one.
        The skipped interval is recorded as incomplete and does not count
        toward the long-break cadence.
        """
        with self._lock:
            if self._state.phase is TimerPhase.STOPPED:
                return

            self._qt_timer.stop()
            self._auto_start_timer.stop()

            skipped = self._state.current_session_type
            self.recorder.finalize(skipped, self._state.elapsed_seconds, completed=False)

            self._state = replace(self._state, remaining_seconds=0)
            self._set_phase(TimerPhase.STOPPED)

            upcoming = next_session_type(skipped, self._state.completed_work_count)
            self._load_interval(upcoming)
            logger.info("%s skipped, next up: %s", skipped.display_name, upcoming.display_name)

            self.interval_skipped.emit(skipped, upcoming)
            self.state_changed.emit(self._state)

    def reset(self):
        """Stop and reload the full duration of the current interval, discarding progress."""
        with self._lock:
            self._qt_timer.stop()
            self._auto_start_timer.stop()
            self.recorder.abandon()

            self._load_interval(self._state.current_session_type)
            self._set_phase(TimerPhase.STOPPED)
            self.state_changed.emit(self._state)

    def shutdown(self):
        """Stop all timers. Call before application exit."""
        with self._lock:
            if self._state.phase is not TimerPhase.STOPPED:
                self.recorder.save_progress(
                    self._state.current_session_type,
                    self._state.elapsed_seconds,
                    completed=False
                )
            self._qt_timer.stop()
            self._auto_start_timer.stop()

    # ==================== Internals ====================

    def _complete_locked(self):
        """Handle completion of the current interval. Caller holds the lock."""
        self._qt_timer.stop()

        finished = self._state.current_session_type
        self.recorder.finalize(finished, self._state.elapsed_seconds, completed=True)

        count = self._state.completed_work_count
        if finished is SessionType.WORK:
            count += 1
        self._state = replace(self._state, completed_work_count=count)

        upcoming = next_session_type(finished, count)
        prefs = self._load_interval(upcoming)
        self._set_phase(TimerPhase.STOPPED)
        logger.info("%s completed, next up: %s", finished.display_name, upcoming.display_name)

        self.interval_completed.emit(finished, upcoming)
        self.state_changed.emit(self._state)

        if prefs.auto_starts(upcoming):
            self._auto_start_timer.start()

    def _on_auto_start(self):
        with self._lock:
            if self._state.phase is TimerPhase.STOPPED:
                self.start()

    def _load_interval(self, session_type: SessionType) -> Preferences:
        prefs = self._load_preferences()
        total = prefs.seconds_for(session_type)
        self._state = replace(
            self._state,
            current_session_type=session_type,
            remaining_seconds=total,
            total_seconds=total,
        )
        return prefs

    def _load_preferences(self) -> Preferences:
        try:
            return self.preferences.get_preferences()
        except Exception as e:
            logger.warning("Could not load preferences, using defaults: %s", e)
            return Preferences()

    def _set_phase(self, new_phase: TimerPhase):
        old_phase = self._state.phase
        if old_phase is new_phase:
            return
        self._state = replace(self._state, phase=new_phase)
        logger.debug("Timer phase %s -> %s", old_phase.value, new_phase.value)
        self.phase_changed.emit(old_phase, new_phase)
