"""Backup manager.

Responsibilities:
- Point-in-time snapshots of the live collections (append-only)
- Daily auto-backup with rotation to the most recent N snapshots
- Restore from a snapshot, always preceded by a safety snapshot
- Full export / import of the store, including backup history
- Weekly export reminder gate

Restore and import swap the live data in a single transaction, so a failure
leaves the store untouched. The safety snapshot remains the way back from a
restore or import that succeeded but was not wanted.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from exam_tracker.core.documents import build_export_document, parse_import_document
from exam_tracker.core.errors import BackupNotFoundError, ImportFormatError
from exam_tracker.core.models import BackupSnapshot
from exam_tracker.db.record_store import BACKUPS, SNAPSHOT_COLLECTIONS, RecordStore
from exam_tracker.utils.time_utils import parse_timestamp, utcnow

logger = structlog.get_logger(__name__)

LAST_AUTO_BACKUP = "lastAutoBackup"
LAST_BACKUP_REMINDER = "lastBackupReminder"

DEFAULT_RETENTION = 10
DEFAULT_AUTO_INTERVAL = timedelta(hours=24)
DEFAULT_REMINDER_INTERVAL = timedelta(days=7)

AUTO_BACKUP = "Auto backup"
MANUAL_BACKUP = "Manual backup"
PRE_RESTORE_BACKUP = "Pre-restore backup"
PRE_IMPORT_BACKUP = "Pre-import backup"
PRE_CLEAR_BACKUP = "Pre-clear backup"


class BackupManager:
    """Snapshots, rotation, restore and full export/import."""

    def __init__(
        self,
        store: RecordStore,
        retention: int = DEFAULT_RETENTION,
        auto_interval: timedelta = DEFAULT_AUTO_INTERVAL,
        reminder_interval: timedelta = DEFAULT_REMINDER_INTERVAL,
    ):
        self.store = store
        self.retention = retention
        self.auto_interval = auto_interval
        self.reminder_interval = reminder_interval

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def create_backup(
        self, description: str = MANUAL_BACKUP, now: datetime | None = None
    ) -> BackupSnapshot:
        """Copy every live collection into one new snapshot."""
        now = _aware(now)
        data = self.store.snapshot(SNAPSHOT_COLLECTIONS)
        record = self.store.insert(
            BACKUPS,
            {"timestamp": now.isoformat(), "description": description, "data": data},
        )
        logger.info(
            "backups.created",
            backup_id=record["id"],
            description=description,
            chapters=len(data.get("chapters", [])),
        )
        return BackupSnapshot.from_record(record)

    def list_backups(self) -> list[BackupSnapshot]:
        """All snapshots, newest first."""
        snapshots = [BackupSnapshot.from_record(r) for r in self.store.all(BACKUPS)]
        snapshots.sort(key=_sort_key, reverse=True)
        return snapshots

    def get_backup(self, backup_id: int) -> BackupSnapshot | None:
        record = self.store.get(BACKUPS, backup_id)
        return BackupSnapshot.from_record(record) if record else None

    def get_backup_or_raise(self, backup_id: int) -> BackupSnapshot:
        snapshot = self.get_backup(backup_id)
        if snapshot is None:
            raise BackupNotFoundError(backup_id)
        return snapshot

    def prune(self) -> int:
        """Delete every snapshot beyond the `retention` most recent.

        Returns:
            Number of snapshots deleted
        """
        stale = self.list_backups()[self.retention:]
        if not stale:
            return 0
        deleted = self.store.bulk_delete(BACKUPS, [b.id for b in stale])
        logger.info("backups.pruned", deleted=deleted, kept=self.retention)
        return deleted

    def check_auto_backup(self, now: datetime | None = None) -> BackupSnapshot | None:
        """Take the daily auto-backup if it is due.

        Due when no auto-backup was ever taken or the last one is older than
        `auto_interval`. After the snapshot the marker is moved to `now` and
        old snapshots are pruned.

        Returns:
            The new snapshot, or None if not due
        """
        now = _aware(now)
        if not _is_due(self.store.get_meta(LAST_AUTO_BACKUP), now, self.auto_interval):
            return None

        snapshot = self.create_backup(AUTO_BACKUP, now=now)
        self.store.set_meta(LAST_AUTO_BACKUP, now.isoformat())
        self.prune()
        return snapshot

    def check_backup_reminder(self, now: datetime | None = None) -> bool:
        """Weekly gate for suggesting an export.

        Returns:
            True if the reminder is due (the gate is re-armed), False otherwise
        """
        now = _aware(now)
        if not _is_due(self.store.get_meta(LAST_BACKUP_REMINDER), now, self.reminder_interval):
            return False
        self.store.set_meta(LAST_BACKUP_REMINDER, now.isoformat())
        logger.info("backups.reminder_due")
        return True

    # -------------------------------------------------------------------------
    # Restore
    # -------------------------------------------------------------------------

    def restore_from_backup(self, backup_id: int) -> bool:
        """Replace the live data with a snapshot's payload.

        A "Pre-restore backup" is always taken first.

        Returns:
            True on success, False if the snapshot does not exist or the
            swap failed (live data unchanged in both cases)
        """
        self.create_backup(PRE_RESTORE_BACKUP)

        try:
            snapshot = self.get_backup_or_raise(backup_id)
            payload = {name: snapshot.data.get(name, []) for name in SNAPSHOT_COLLECTIONS}
            self.store.replace_all(payload)
        except BackupNotFoundError as e:
            logger.error("backups.restore_failed", backup_id=backup_id, error=str(e))
            return False
        except (sqlite3.Error, ValueError) as e:
            logger.error("backups.restore_failed", backup_id=backup_id, error=str(e))
            return False

        logger.info("backups.restored", backup_id=backup_id, description=snapshot.description)
        return True

    # -------------------------------------------------------------------------
    # Full export / import
    # -------------------------------------------------------------------------

    def export_full_database(self, now: datetime | None = None) -> dict[str, Any]:
        """Serialize the whole store, including backup history."""
        now = _aware(now)
        snapshot = self.store.snapshot((*SNAPSHOT_COLLECTIONS, BACKUPS))
        backups = snapshot.pop(BACKUPS)
        document = build_export_document(snapshot, backups, now)
        logger.info(
            "backups.exported",
            chapters=len(snapshot.get("chapters", [])),
            backups=len(backups),
        )
        return document

    def import_full_database(self, document: dict[str, Any] | str | bytes) -> bool:
        """Replace the live data with an export document.

        A "Pre-import backup" is always taken first. Missing collections are
        imported as empty. Snapshots carried by the document are appended to
        the backup history unless an identical one (same timestamp and
        description) is already stored.

        Returns:
            True on success, False if the document is malformed or the swap
            failed (live data unchanged in both cases)
        """
        self.create_backup(PRE_IMPORT_BACKUP)

        try:
            payload = parse_import_document(document)
            known = {(b.timestamp, b.description) for b in self.list_backups()}
            new_backups = [
                b for b in payload.backups
                if (b["timestamp"], b.get("description", "")) not in known
            ]
            self.store.replace_all(payload.collections, append={BACKUPS: new_backups})
        except ImportFormatError as e:
            logger.error("backups.import_failed", error=str(e))
            return False
        except (sqlite3.Error, ValueError) as e:
            logger.error("backups.import_failed", error=str(e))
            return False

        logger.info(
            "backups.imported",
            chapters=len(payload.collections.get("chapters", [])),
            backups=len(new_backups),
        )
        return True


def _is_due(marker: str | None, now: datetime, interval: timedelta) -> bool:
    if not marker:
        return True
    try:
        last = parse_timestamp(marker)
    except ValueError:
        logger.warning("backups.invalid_marker", marker=marker)
        return True
    return last < now - interval


def _aware(now: datetime | None) -> datetime:
    """Default to the current UTC time; treat a naive value as UTC."""
    if now is None:
        return utcnow()
    if now.tzinfo is None:
        return now.replace(tzinfo=timezone.utc)
    return now


def _sort_key(snapshot: BackupSnapshot) -> tuple[datetime, int]:
    try:
        taken = parse_timestamp(snapshot.timestamp)
    except (AttributeError, TypeError, ValueError):
        logger.warning(
            "backups.invalid_timestamp",
            backup_id=snapshot.id,
            timestamp=snapshot.timestamp,
        )
        taken = datetime.min.replace(tzinfo=timezone.utc)
    return taken, snapshot.id
