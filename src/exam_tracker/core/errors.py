"""Exception hierarchy for the exam tracker.

Only failures that callers must handle are raised. Validation rejections
(duplicate names, empty values) and updates of unknown ids are reported
through return values instead.
"""

from __future__ import annotations

from pathlib import Path


class TrackerError(Exception):
    """Base exception for exam tracker errors."""

    pass


class StorageInitError(TrackerError):
    """Raised when the database cannot be opened or is used before opening."""

    def __init__(self, path: Path | str, reason: str):
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Cannot open database at {self.path}: {reason}")


class ClassDefaultsError(TrackerError):
    """Raised when the class-defaults document cannot be read or parsed."""

    def __init__(self, source: Path | str, reason: str):
        self.source = str(source)
        self.reason = reason
        super().__init__(f"Invalid class defaults document {self.source}: {reason}")


class ImportFormatError(TrackerError):
    """Raised when an import or legacy document has the wrong shape."""

    pass


class BackupNotFoundError(TrackerError):
    """Raised when a backup snapshot id does not exist."""

    def __init__(self, backup_id: int):
        self.backup_id = backup_id
        super().__init__(f"Backup not found: {backup_id}")
