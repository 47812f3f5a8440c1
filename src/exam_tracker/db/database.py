"""SQLite database connection and schema management.

Provides the `Database` handle used by every store in a tracker session.
Each session owns its own handle, so several independent databases can be
open in the same process (tests rely on this).
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import structlog

from exam_tracker.core.errors import StorageInitError

logger = structlog.get_logger(__name__)

# Default database location
DEFAULT_DB_PATH = Path("db/exam_tracker.db")

MEMORY = ":memory:"


class Database:
    """Handle to one SQLite database file.

    The schema is created by `open()`. Until `open()` succeeds every call to
    `connect()` raises `StorageInitError`.

    Example:
        db = Database(Path("db/exam_tracker.db")).open()
        with db.connect() as conn:
            rows = conn.execute("SELECT * FROM chapters").fetchall()
    """

    def __init__(self, path: Path | str = DEFAULT_DB_PATH):
        self.path = path if path == MEMORY else Path(path)
        self._opened = False
        # ":memory:" databases vanish with their connection, so keep one
        self._shared_conn: sqlite3.Connection | None = None

    @property
    def is_memory(self) -> bool:
        return self.path == MEMORY

    @property
    def is_open(self) -> bool:
        return self._opened

    def open(self) -> "Database":
        """Open the database and create the schema if needed.

        Returns:
            self, for chaining

        Raises:
            StorageInitError: If the file cannot be created or opened
        """
        try:
            if not self.is_memory:
                self.path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._new_connection()
            try:
                _create_schema(conn)
                conn.commit()
            finally:
                if not self.is_memory:
                    conn.close()
        except (sqlite3.Error, OSError) as e:
            logger.error("database.open_failed", path=str(self.path), error=str(e))
            raise StorageInitError(self.path, str(e)) from e

        self._opened = True
        logger.info("database.initialized", path=str(self.path))
        return self

    def close(self) -> None:
        """Close the shared connection of an in-memory database."""
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None
        self._opened = False

    @contextmanager
    def connect(self) -> Generator[sqlite3.Connection, None, None]:
        """Get a database connection as a context manager.

        Commits when the block exits normally and rolls back on any
        exception, so everything executed inside one block is a single
        transaction.

        Yields:
            SQLite connection with row factory set to sqlite3.Row

        Raises:
            StorageInitError: If the database was never opened
        """
        if not self._opened:
            raise StorageInitError(self.path, "database is not open")

        conn = self._new_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            if not self.is_memory:
                conn.close()

    def _new_connection(self) -> sqlite3.Connection:
        if self.is_memory:
            if self._shared_conn is None:
                self._shared_conn = self._configure(sqlite3.connect(MEMORY))
            return self._shared_conn
        return self._configure(sqlite3.connect(self.path))

    @staticmethod
    def _configure(conn: sqlite3.Connection) -> sqlite3.Connection:
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn


def _create_schema(conn: sqlite3.Connection) -> None:
    """Create database schema.

    Uses IF NOT EXISTS for idempotency. List and mapping fields are stored
    as JSON text.
    """
    conn.executescript(
        """
        CREATE TABLE IF NOT EXISTS chapters (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            subject TEXT NOT NULL DEFAULT '',
            chapter_no TEXT NOT NULL DEFAULT '',
            chapter_name TEXT NOT NULL DEFAULT '',
            exam_types TEXT NOT NULL DEFAULT '[]',
            learning_status TEXT NOT NULL DEFAULT '{}',
            writing_done TEXT NOT NULL DEFAULT 'No',
            confidence TEXT NOT NULL DEFAULT 'None',
            last_updated TEXT,
            notes TEXT NOT NULL DEFAULT ''
        );

        -- Singleton row, key = 'info'
        CREATE TABLE IF NOT EXISTS student_info (
            key TEXT PRIMARY KEY,
            name TEXT NOT NULL DEFAULT '',
            class_name TEXT NOT NULL DEFAULT '',
            review_date TEXT NOT NULL DEFAULT '',
            locked INTEGER NOT NULL DEFAULT 0
        );

        -- subjects, learningMethods, examTypes
        CREATE TABLE IF NOT EXISTS config (
            key TEXT PRIMARY KEY,
            items TEXT NOT NULL DEFAULT '[]'
        );

        CREATE TABLE IF NOT EXISTS daily_tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            date TEXT NOT NULL,
            subject TEXT NOT NULL DEFAULT '',
            task TEXT NOT NULL DEFAULT '',
            chapter_id INTEGER,
            status TEXT NOT NULL DEFAULT 'pending',
            actual_work TEXT NOT NULL DEFAULT ''
        );

        CREATE TABLE IF NOT EXISTS daily_history (
            date TEXT PRIMARY KEY,
            tasks TEXT NOT NULL DEFAULT '[]',
            score REAL
        );

        CREATE TABLE IF NOT EXISTS backups (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp TEXT NOT NULL,
            description TEXT NOT NULL DEFAULT '',
            data TEXT NOT NULL DEFAULT '{}'
        );

        CREATE TABLE IF NOT EXISTS class_defaults (
            class_name TEXT PRIMARY KEY,
            subjects TEXT NOT NULL DEFAULT '[]',
            learning_methods TEXT NOT NULL DEFAULT '[]',
            exam_types TEXT NOT NULL DEFAULT '[]'
        );

        CREATE TABLE IF NOT EXISTS default_chapters (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            class_name TEXT NOT NULL,
            subject TEXT NOT NULL DEFAULT '',
            chapter_no TEXT NOT NULL DEFAULT '',
            chapter_name TEXT NOT NULL DEFAULT '',
            description TEXT NOT NULL DEFAULT ''
        );

        -- Store markers (migrated, lastAutoBackup, lastBackupReminder).
        -- Never part of snapshots or exports.
        CREATE TABLE IF NOT EXISTS meta (
            key TEXT PRIMARY KEY,
            value TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_chapters_subject ON chapters(subject);
        CREATE INDEX IF NOT EXISTS idx_daily_tasks_date ON daily_tasks(date);
        CREATE INDEX IF NOT EXISTS idx_backups_timestamp ON backups(timestamp);
        CREATE INDEX IF NOT EXISTS idx_default_chapters_class ON default_chapters(class_name);
        """
    )
