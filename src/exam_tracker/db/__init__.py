"""Database module for SQLite persistence.

Provides:
- Database connection management and schema initialization
- Generic record store over the tracker collections
"""

from exam_tracker.db.database import DEFAULT_DB_PATH, Database
from exam_tracker.db.record_store import (
    BulkUpdateResult,
    CollectionSpec,
    RecordStore,
)

__all__ = [
    "DEFAULT_DB_PATH",
    "Database",
    "BulkUpdateResult",
    "CollectionSpec",
    "RecordStore",
]
