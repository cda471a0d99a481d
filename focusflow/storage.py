"""
Storage module for FocusFlow.
Defines the store contracts the core depends on and a SQLite-backed
implementation of both.
"""

import csv
import logging
import os
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

from .models import Preferences, SessionRecord, SessionType

logger = logging.getLogger(__name__)


def get_app_data_dir() -> Path:
    """
    Get the appropriate application data directory based on OS.
    Creates the directory if it doesn't exist.
    """
    override = os.environ.get('FOCUSFLOW_DATA_DIR')
    if override:
        base_dir = Path(override)
        base_dir.mkdir(parents=True, exist_ok=True)
        return base_dir

    if os.name == 'nt':  # Windows
        base = Path(os.environ.get('APPDATA', Path.home()))
    elif os.name == 'posix':
        # macOS uses ~/Library/Application Support, Linux uses ~/.local/share
        if os.uname().sysname == 'Darwin':
            base = Path.home() / 'Library' / 'Application Support'
        else:
            base = Path(os.environ.get('XDG_DATA_HOME', Path.home() / '.local' / 'share'))
    else:
        base = Path.home()

    app_dir = base / 'FocusFlow'
    app_dir.mkdir(parents=True, exist_ok=True)
    return app_dir


def _day_key(value) -> str:
    if isinstance(value, (date, datetime)):
        return value.strftime('%Y-%m-%d')
    return str(value)


class SessionStore(ABC):
    """Durable log of session records."""

    @abstractmethod
    def list_by_date_range(self, start_date, end_date) -> List[SessionRecord]:
        """Return every record whose `date` key falls in [start_date, end_date]."""

    @abstractmethod
    def upsert_open_interval(self, record: SessionRecord):
        """Insert or overwrite the partial row of the interval still running."""

    @abstractmethod
    def finalize(self, record: SessionRecord):
        """Write the final state of an interval and close it."""

    def list_undated(self) -> List[SessionRecord]:
        """Records whose `date` key is not a valid day."""
        return []


class PreferenceStore(ABC):
    """Source of the user's timer preferences."""

    @abstractmethod
    def get_preferences(self) -> Preferences:
        pass


class SqliteStorage(SessionStore, PreferenceStore):
    """
    Database storage manager.
    Handles all SQLite operations for sessions and settings.
    """

    PREFERENCE_KEYS = (
        'work_minutes', 'short_break_minutes', 'long_break_minutes',
        'auto_start_breaks', 'auto_start_work',
    )

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize storage with database path.

        Args:
            db_path: Optional custom path for database file.
                    If None, uses default app data directory.
        """
        if db_path is None:
            db_path = str(get_app_data_dir() / 'focusflow.db')

        self.db_path = db_path
        self._init_database()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_database(self):
        """Initialize database schema if tables don't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS sessions (
                    id TEXT PRIMARY KEY,
                    session_type TEXT NOT NULL,
                    start_time TEXT,
                    end_time TEXT,
                    date TEXT NOT NULL,
                    duration_minutes INTEGER NOT NULL DEFAULT 0,
                    is_completed INTEGER NOT NULL DEFAULT 0,
                    is_open INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE TABLE IF NOT EXISTS settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            ''')

            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_sessions_date
                ON sessions(date)
            ''')

    # ==================== Sessions ====================

    def upsert_open_interval(self, record: SessionRecord):
        record.is_open = True
        self._write(record)
        logger.debug("Saved partial %s interval %s (%d min)",
                     record.session_type.value, record.id, record.duration_minutes)

    def finalize(self, record: SessionRecord):
        record.is_open = False
        self._write(record)
        logger.debug("Finalized %s interval %s (completed=%s, %d min)",
                     record.session_type.value, record.id,
                     record.is_completed, record.duration_minutes)

    def _write(self, record: SessionRecord):
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                INSERT OR REPLACE INTO sessions
                (id, session_type, start_time, end_time, date,
                 duration_minutes, is_completed, is_open, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            ''', (
                record.id,
                record.session_type.value,
                record.start_time.isoformat() if record.start_time else None,
                record.end_time.isoformat() if record.end_time else None,
                record.date,
                max(0, record.duration_minutes),
                1 if record.is_completed else 0,
                1 if record.is_open else 0,
                record.created_at.isoformat(),
            ))

    def get_session(self, record_id: str) -> Optional[SessionRecord]:
        """Get a session record by ID."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM sessions WHERE id = ?', (record_id,))
            records = self._rows_to_records(cursor.fetchall())
            return records[0] if records else None

    def list_by_date_range(self, start_date, end_date) -> List[SessionRecord]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM sessions
                WHERE date >= ? AND date <= ?
                ORDER BY date, start_time
            ''', (_day_key(start_date), _day_key(end_date)))
            return self._rows_to_records(cursor.fetchall())

    def list_undated(self) -> List[SessionRecord]:
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM sessions
                WHERE date(sessions.date) IS NULL OR date(sessions.date) != sessions.date
                ORDER BY created_at
            ''')
            records = self._rows_to_records(cursor.fetchall())
        return [record for record in records if record.day is None]

    def list_all(self) -> List[SessionRecord]:
        """Every stored record, including rows with malformed dates."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT * FROM sessions ORDER BY date, start_time')
            return self._rows_to_records(cursor.fetchall())

    def get_open_interval(self, day) -> Optional[SessionRecord]:
        """Most recent interval of a day that was never finalized."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                SELECT * FROM sessions
                WHERE date = ? AND is_open = 1
                ORDER BY created_at DESC LIMIT 1
            ''', (_day_key(day),))
            records = self._rows_to_records(cursor.fetchall())
            return records[0] if records else None

    def _rows_to_records(self, rows) -> List[SessionRecord]:
        """Convert rows, skipping any whose session type is unknown."""
        records = []
        for row in rows:
            try:
                records.append(self._row_to_record(row))
            except ValueError:
                logger.warning("Skipping session %s with unknown type %r",
                               row['id'], row['session_type'])
        return records

    def _row_to_record(self, row: sqlite3.Row) -> SessionRecord:
        """Convert a database row to a SessionRecord object."""
        return SessionRecord(
            id=row['id'],
            session_type=SessionType(row['session_type']),
            start_time=_parse_timestamp(row['start_time']),
            end_time=_parse_timestamp(row['end_time']),
            date=row['date'],
            duration_minutes=row['duration_minutes'],
            is_completed=bool(row['is_completed']),
            is_open=bool(row['is_open']),
            created_at=_parse_timestamp(row['created_at']) or datetime.now(),
        )

    # ==================== Settings ====================

    def get_preferences(self) -> Preferences:
        """Get timer preferences, falling back to defaults for missing keys."""
        values = {}
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('SELECT key, value FROM settings')
            for row in cursor.fetchall():
                key, value = row['key'], row['value']
                if key not in self.PREFERENCE_KEYS:
                    continue
                # Convert string to appropriate type
                if value.lower() in ('true', 'false'):
                    values[key] = value.lower() == 'true'
                else:
                    try:
                        values[key] = int(value)
                    except ValueError:
                        logger.warning("Ignoring malformed setting %s=%r", key, value)
        return Preferences(**values)

    def save_preferences(self, preferences: Preferences):
        """Save timer preferences."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            for key in self.PREFERENCE_KEYS:
                value = str(getattr(preferences, key))
                cursor.execute('''
                    INSERT OR REPLACE INTO settings (key, value)
                    VALUES (?, ?)
                ''', (key, value))

    # ==================== Export ====================

    def export_to_csv(self, filepath: str, start_date, end_date) -> int:
        """
        Export session records in a date range to a CSV file.

        Returns:
            Number of records exported.
        """
        records = self.list_by_date_range(start_date, end_date)

        with open(filepath, 'w', newline='', encoding='utf-8') as f:
            writer = csv.writer(f)
            writer.writerow([
                'ID', 'Type', 'Date', 'Start Time', 'End Time',
                'Duration (min)', 'Completed'
            ])
            for record in records:
                writer.writerow([
                    record.id,
                    record.session_type.value,
                    record.date,
                    record.start_time.strftime('%Y-%m-%d %H:%M:%S') if record.start_time else '',
                    record.end_time.strftime('%Y-%m-%d %H:%M:%S') if record.end_time else '',
                    record.duration_minutes,
                    'Yes' if record.is_completed else 'No'
                ])

        return len(records)


def _parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None
