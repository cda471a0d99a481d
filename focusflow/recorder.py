"""
Session recorder for FocusFlow.
Turns timer events into session record writes against the injected store.
"""

import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Callable, Dict, Optional, Tuple

from PySide6.QtCore import QObject, QThreadPool, QTimer, Signal

from .models import DATE_FORMAT, SessionRecord, SessionType
from .storage import SessionStore

logger = logging.getLogger(__name__)

UPSERT = "upsert"
FINALIZE = "finalize"


class SessionRecorder(QObject):
    """
    Bridges timer events to durable records.

    Exactly one interval is open at a time. Partial progress for the open
    interval is upserted under the same record id, so a later finalize
    overwrites it instead of adding a second row.

    Writes are handed to a single worker thread so a slow store never holds
    up the tick loop. A failed write is logged and kept as pending. Pending
    writes ride along with the next write, and a 1 Hz retry timer keeps
    trying them while the timer sits stopped.

    Signals:
        save_failed: Emitted with a user-facing notice when a write fails.
    """

    save_failed = Signal(str)
    # Emitted from the worker; delivered on the recorder's own thread
    _retry_needed = Signal()

    RETRY_INTERVAL_MS = 1000

    def __init__(
        self,
        store: SessionStore,
        clock: Optional[Callable[[], datetime]] = None,
        dispatch: Optional[Callable[[Callable[[], None]], None]] = None,
        parent: Optional[QObject] = None
    ):
        """
        Initialize the recorder.

        Args:
            store: Session store receiving the writes.
            clock: Returns the current local time. Defaults to datetime.now.
            dispatch: Runs a write job. Defaults to a single-thread pool.
            parent: Optional Qt parent object.
        """
        super().__init__(parent)

        self.store = store
        self._clock = clock or datetime.now

        self._pool: Optional[QThreadPool] = None
        if dispatch is None:
            # One thread keeps writes in submission order
            self._pool = QThreadPool(self)
            self._pool.setMaxThreadCount(1)
            dispatch = self._pool.start
        self._dispatch = dispatch

        self._open: Optional[SessionRecord] = None
        self._partial_written = False

        self._lock = threading.Lock()
        self._pending: Dict[str, Tuple[str, SessionRecord]] = {}

        self._retry_timer = QTimer(self)
        self._retry_timer.setInterval(self.RETRY_INTERVAL_MS)
        self._retry_timer.timeout.connect(self._on_retry_timeout)
        self._retry_needed.connect(self._schedule_retry)

    @property
    def open_record(self) -> Optional[SessionRecord]:
        """Copy of the interval currently open, if any."""
        if self._open is None:
            return None
        return replace(self._open)

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def open_interval(self, session_type: SessionType) -> SessionRecord:
        """
        Open a record for an interval that starts running.
        Resuming the interval already open for this type keeps its record.
        """
        if self._open is not None and self._open.session_type is session_type:
            return replace(self._open)

        now = self._clock()
        self._open = SessionRecord(
            id=uuid.uuid4().hex,
            session_type=session_type,
            start_time=now,
            date=now.strftime(DATE_FORMAT),
            duration_minutes=0,
            is_completed=False,
            is_open=True,
            created_at=now,
        )
        self._partial_written = False
        logger.debug("Opened %s interval %s", session_type.value, self._open.id)
        return replace(self._open)

    def save_progress(self, session_type: SessionType, elapsed_seconds: int, completed: bool = False):
        """
        Persist progress of the open interval.

        A completed save finalizes and closes the interval; otherwise the
        partial row is upserted in place.
        """
        if completed:
            self.finalize(session_type, elapsed_seconds, completed=True)
            return

        record = self._ensure_open(session_type)
        record.duration_minutes = max(0, elapsed_seconds) // 60
        record.is_completed = False
        self._partial_written = True
        self._submit(UPSERT, replace(record))

    def finalize(self, session_type: SessionType, elapsed_seconds: int, completed: bool):
        """Write the final state of the open interval and close it."""
        record = self._ensure_open(session_type)
        record.duration_minutes = max(0, elapsed_seconds) // 60
        record.is_completed = completed
        record.end_time = self._clock()
        record.is_open = False

        self._open = None
        self._partial_written = False
        self._submit(FINALIZE, replace(record))

    def abandon(self):
        """
        Drop the open interval without recording more progress.
        A partial row that was already written is closed as-is.
        """
        record = self._open
        if record is None:
            return

        self._open = None
        if self._partial_written:
            record.is_open = False
            self._submit(FINALIZE, replace(record))
        self._partial_written = False
        logger.debug("Abandoned %s interval %s", record.session_type.value, record.id)

    def retry_pending(self):
        """Re-attempt writes that failed earlier, once each."""
        with self._lock:
            if not self._pending:
                return
        self._dispatch(lambda: self._run(None))

    @property
    def retry_scheduled(self) -> bool:
        return self._retry_timer.isActive()

    def wait_for_writes(self, msecs: int = 5000) -> bool:
        """
        Block until queued writes are done. Used on shutdown.

        Writes still pending get one last attempt. Returns False when the
        queue did not drain in time or a write is still failing.
        """
        done = self._drain(msecs)
        if self.pending_count:
            self.retry_pending()
            done = self._drain(msecs)

        self._retry_timer.stop()
        remaining = self.pending_count
        if remaining:
            logger.error("%d session write(s) could not be saved before exit", remaining)
        return done and remaining == 0

    def _drain(self, msecs: int) -> bool:
        if self._pool is None:
            return True
        return self._pool.waitForDone(msecs)

    def _schedule_retry(self):
        if not self._retry_timer.isActive():
            self._retry_timer.start()

    def _on_retry_timeout(self):
        if not self.pending_count:
            self._retry_timer.stop()
            return
        self.retry_pending()

    def _ensure_open(self, session_type: SessionType) -> SessionRecord:
        if self._open is None or self._open.session_type is not session_type:
            self.open_interval(session_type)
        return self._open

    def _submit(self, op: str, record: SessionRecord):
        self._dispatch(lambda: self._run((op, record)))

    def _run(self, job: Optional[Tuple[str, SessionRecord]]):
        """Worker body: flush pending writes once, then the new one."""
        with self._lock:
            pending = self._pending
            self._pending = {}

        if job is not None:
            # A newer write for the same interval supersedes the stale one
            pending.pop(job[1].id, None)

        for record_id, (op, record) in pending.items():
            self._attempt(op, record)

        if job is not None:
            self._attempt(*job)

    def _attempt(self, op: str, record: SessionRecord):
        try:
            if op == FINALIZE:
                self.store.finalize(record)
            else:
                self.store.upsert_open_interval(record)
        except Exception as e:
            logger.warning("Could not %s session %s: %s", op, record.id, e)
            with self._lock:
                # Keep the newest failed write for this interval
                if not (record.id in self._pending and self._pending[record.id][0] == FINALIZE
                        and op == UPSERT):
                    self._pending[record.id] = (op, record)
            self.save_failed.emit("Could not save progress. Will retry shortly.")
            self._retry_needed.emit()
