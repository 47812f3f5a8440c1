"""One-shot migration of the legacy flat document.

Older versions of the tracker kept everything in a single JSON document
(`examTrackingData`):

    {
        "trackingData": [...], "studentInfo": {...},
        "subjects": [...], "learningMethods": [...], "examTypes": [...],
        "dailyPlans": [...], "dailyHistory": [...]
    }

The migration copies it into the record store once, guarded by the
`migrated` marker, and takes a checkpoint snapshot. The legacy file is left
in place as a secondary safety net.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import structlog

from exam_tracker.core.backup_manager import BackupManager
from exam_tracker.core.config_store import EXAM_TYPES, LEARNING_METHODS, SUBJECTS
from exam_tracker.core.documents import from_portable
from exam_tracker.core.errors import ImportFormatError
from exam_tracker.db.record_store import (
    CHAPTERS,
    CONFIG,
    DAILY_HISTORY,
    DAILY_TASKS,
    STUDENT_INFO,
    RecordStore,
)
from exam_tracker.utils.time_utils import utcnow

logger = structlog.get_logger(__name__)

DEFAULT_LEGACY_PATH = Path("data/state/examTrackingData.json")

MIGRATED = "migrated"
CHECKPOINT_DESCRIPTION = "Initial migration from legacy document"


@dataclass
class MigrationResult:
    """Summary of a migration run."""

    migrated: bool
    reason: str = ""
    chapters: int = 0
    daily_tasks: int = 0
    history_entries: int = 0
    backup_id: int | None = None


def load_legacy_document(path: Path) -> dict[str, Any] | None:
    """Read the legacy document.

    Returns:
        The parsed document, or None if the file does not exist

    Raises:
        ImportFormatError: If the file is not a JSON object
    """
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise ImportFormatError(f"Unreadable legacy document {path}: {e}") from e
    if not isinstance(data, dict):
        raise ImportFormatError(f"Legacy document {path} is not a JSON object")
    return data


def legacy_to_collections(data: dict[str, Any]) -> dict[str, list[dict[str, Any]]]:
    """Convert the legacy document into store records per collection."""
    collections: dict[str, list[dict[str, Any]]] = {
        CHAPTERS: [from_portable(CHAPTERS, r) for r in _list(data, "trackingData")],
        DAILY_TASKS: [from_portable(DAILY_TASKS, r) for r in _list(data, "dailyPlans")],
        DAILY_HISTORY: [from_portable(DAILY_HISTORY, r) for r in _list(data, "dailyHistory")],
        CONFIG: [
            {"key": key, "items": list(data.get(key) or [])}
            for key in (SUBJECTS, LEARNING_METHODS, EXAM_TYPES)
        ],
        STUDENT_INFO: [],
    }
    info = data.get("studentInfo")
    if isinstance(info, dict):
        collections[STUDENT_INFO].append(
            from_portable(STUDENT_INFO, {**info, "key": "info"})
        )
    return collections


def _list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key) or []
    if not isinstance(value, list):
        raise ImportFormatError(f"Legacy '{key}' must be a list")
    return value


class MigrationEngine:
    """Moves the legacy document into the record store exactly once."""

    def __init__(
        self,
        store: RecordStore,
        backups: BackupManager,
        legacy_path: Path = DEFAULT_LEGACY_PATH,
    ):
        self.store = store
        self.backups = backups
        self.legacy_path = Path(legacy_path)

    def is_migrated(self) -> bool:
        return bool(self.store.get_meta(MIGRATED))

    def migrate(self) -> MigrationResult:
        """Run the migration if a legacy document exists and it has not run yet.

        A corrupt legacy document is logged and skipped so it never blocks
        startup.
        """
        if self.is_migrated():
            return MigrationResult(migrated=False, reason="already migrated")

        try:
            data = load_legacy_document(self.legacy_path)
            if data is None:
                return MigrationResult(migrated=False, reason="no legacy document")
            collections = legacy_to_collections(data)
        except ImportFormatError as e:
            logger.error("migration.failed", path=str(self.legacy_path), error=str(e))
            return MigrationResult(migrated=False, reason=str(e))

        logger.info("migration.started", path=str(self.legacy_path))

        for name, records in collections.items():
            if records:
                self.store.bulk_put(name, records)

        self.store.set_meta(MIGRATED, {"value": True, "date": utcnow().isoformat()})
        checkpoint = self.backups.create_backup(CHECKPOINT_DESCRIPTION)

        result = MigrationResult(
            migrated=True,
            chapters=len(collections[CHAPTERS]),
            daily_tasks=len(collections[DAILY_TASKS]),
            history_entries=len(collections[DAILY_HISTORY]),
            backup_id=checkpoint.id,
        )
        logger.info(
            "migration.complete",
            chapters=result.chapters,
            daily_tasks=result.daily_tasks,
            history_entries=result.history_entries,
        )
        return result
