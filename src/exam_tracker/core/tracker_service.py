"""Tracker domain service.

`TrackerSession` is the object the rest of the application talks to. It
owns one database and the stores built on it, and implements the domain
rules:

- lastUpdated only moves forward on confidence / learning-status upgrades
- learning-status keys follow the configured learning methods
- a locked student profile keeps its name and class
- changing class (while unlocked) seeds config lists and chapters from the
  class defaults

Usage:
    with TrackerSession.open() as session:
        chapter = session.add_chapter(subject="Maths", chapter_no="1")
        session.update_chapter(chapter.id, "confidence", "Good")
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Any

import structlog

from exam_tracker.config.app_config import AppConfig, load_app_config
from exam_tracker.core.backup_manager import PRE_CLEAR_BACKUP, BackupManager
from exam_tracker.core.class_defaults import ClassDefaultsLoader
from exam_tracker.core.config_store import (
    EXAM_TYPES,
    LEARNING_METHODS,
    SUBJECTS,
    AddResult,
    ConfigStore,
)
from exam_tracker.core.documents import chapters_to_csv
from exam_tracker.core.migration import MigrationEngine, MigrationResult
from exam_tracker.core.models import (
    NOT_STARTED,
    STATUS_RANKS,
    STUDENT_INFO_KEY,
    TASK_STATUSES,
    BackupSnapshot,
    Chapter,
    DailyTask,
    HistoryEntry,
    StudentInfo,
    is_confidence_upgrade,
    is_status_upgrade,
)
from exam_tracker.db.database import Database
from exam_tracker.db.record_store import (
    CHAPTERS,
    DAILY_HISTORY,
    DAILY_TASKS,
    STUDENT_INFO,
    RecordStore,
)
from exam_tracker.utils.time_utils import to_date_str, today_str, utcnow

logger = structlog.get_logger(__name__)

CHAPTER_FIELDS = frozenset(
    {"subject", "chapter_no", "chapter_name", "exam_types", "writing_done", "confidence", "notes"}
)
STUDENT_FIELDS = frozenset({"name", "class_name", "review_date"})
LOCKED_FIELDS = frozenset({"name", "class_name"})

# Lists applied by clear_all_data()
RESET_SUBJECTS = ["Maths", "Science"]
RESET_LEARNING_METHODS = ["School", "Tuition", "Online App", "Self Study"]
RESET_EXAM_TYPES = ["Half Yearly", "Annual", "Unit Test 1"]

WEEKDAY_NAMES = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass
class CascadeResult:
    """Outcome of a config edit that touches every chapter."""

    accepted: bool
    reason: AddResult | None = None
    updated: int = 0
    failed: list[int] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.accepted


@dataclass
class WeeklyStats:
    """Summary of the last seven days of daily history."""

    average: int
    days_worked: int
    subject_frequency: dict[str, int]


class TrackerSession:
    """A session over one tracker database."""

    def __init__(self, db: Database, config: AppConfig):
        self.db = db
        self.app_config = config
        self.store = RecordStore(db)
        self.config = ConfigStore(self.store)
        self.defaults = ClassDefaultsLoader(self.store, config.storage.class_defaults_path)
        self.backups = BackupManager(
            self.store,
            retention=config.backups.retention,
            auto_interval=timedelta(hours=config.backups.auto_interval_hours),
            reminder_interval=timedelta(days=config.backups.reminder_interval_days),
        )
        self.migration = MigrationEngine(
            self.store, self.backups, config.storage.legacy_document_path
        )
        self.backup_reminder_due = False
        self.migration_result: MigrationResult | None = None

    @classmethod
    def open(
        cls, config: AppConfig | None = None, now: datetime | None = None
    ) -> "TrackerSession":
        """Open the database and run the startup sequence.

        Startup order: legacy migration, class defaults, auto-backup check,
        weekly reminder check.

        Raises:
            StorageInitError: If the database cannot be opened
        """
        config = config or load_app_config()
        db = Database(config.storage.db_path).open()
        session = cls(db, config)
        try:
            session.startup(now)
        except Exception:
            db.close()
            raise
        return session

    def startup(self, now: datetime | None = None) -> None:
        self.migration_result = self.migration.migrate()
        self.defaults.initialize()
        self.backups.check_auto_backup(now)
        self.backup_reminder_due = self.backups.check_backup_reminder(now)
        logger.info("session.ready", db=str(self.db.path), reminder=self.backup_reminder_due)

    def close(self) -> None:
        self.db.close()

    def __enter__(self) -> "TrackerSession":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    # =========================================================================
    # CONFIG LISTS
    # =========================================================================

    @property
    def subjects(self) -> list[str]:
        return self.config.get(SUBJECTS)

    @property
    def learning_methods(self) -> list[str]:
        return self.config.get(LEARNING_METHODS)

    @property
    def exam_types(self) -> list[str]:
        return self.config.get(EXAM_TYPES)

    def add_subject(self, name: str) -> AddResult:
        return self.config.add_item(SUBJECTS, name)

    def add_exam_type(self, name: str) -> AddResult:
        return self.config.add_item(EXAM_TYPES, name)

    def add_learning_method(self, name: str) -> CascadeResult:
        """Add a method and give every chapter a Not Started status for it."""
        result = self.config.add_item(LEARNING_METHODS, name)
        if not result:
            return CascadeResult(accepted=False, reason=result)

        method = name.strip()
        updates = [
            (c.id, {"learning_status": {**c.learning_status, method: NOT_STARTED}})
            for c in self.list_chapters()
        ]
        return self._cascade(updates, reason=result, action="learning_method_added", value=method)

    def remove_learning_method(self, name: str) -> CascadeResult:
        """Remove a method and drop its status from every chapter."""
        if not self.config.remove_item(LEARNING_METHODS, name):
            return CascadeResult(accepted=False)

        updates = []
        for chapter in self.list_chapters():
            if name in chapter.learning_status:
                status = dict(chapter.learning_status)
                del status[name]
                updates.append((chapter.id, {"learning_status": status}))
        return self._cascade(updates, action="learning_method_removed", value=name)

    def remove_exam_type(self, name: str) -> CascadeResult:
        """Remove an exam type and strip the tag from every chapter."""
        if not self.config.remove_item(EXAM_TYPES, name):
            return CascadeResult(accepted=False)

        updates = [
            (c.id, {"exam_types": [t for t in c.exam_types if t != name]})
            for c in self.list_chapters()
            if name in c.exam_types
        ]
        return self._cascade(updates, action="exam_type_removed", value=name)

    def remove_subject(self, name: str) -> CascadeResult:
        """Remove a subject and delete every chapter of that subject."""
        if not self.config.remove_item(SUBJECTS, name):
            return CascadeResult(accepted=False)

        doomed = [c.id for c in self.list_chapters() if c.subject == name]
        if doomed:
            self.store.bulk_delete(CHAPTERS, doomed)
        logger.info("tracker.subject_removed", subject=name, chapters_deleted=len(doomed))
        return CascadeResult(accepted=True, updated=len(doomed))

    def rename_subject_in_chapters(self, old: str, new: str) -> int:
        """Move every chapter of subject `old` to `new`.

        Returns:
            Number of chapters updated
        """
        updates = [(c.id, {"subject": new}) for c in self.list_chapters() if c.subject == old]
        result = self._cascade(updates, action="subject_renamed", value=new)
        return result.updated

    def _cascade(
        self,
        updates: list[tuple[int, dict[str, Any]]],
        action: str,
        value: str,
        reason: AddResult | None = None,
    ) -> CascadeResult:
        bulk = self.store.bulk_update(CHAPTERS, updates)
        logger.info(
            f"tracker.{action}",
            value=value,
            updated=bulk.updated,
            failed=len(bulk.failed),
        )
        return CascadeResult(
            accepted=True, reason=reason, updated=bulk.updated, failed=list(bulk.failed)
        )

    # =========================================================================
    # CHAPTERS
    # =========================================================================

    def list_chapters(self) -> list[Chapter]:
        return [Chapter.from_record(r) for r in self.store.all(CHAPTERS)]

    def get_chapter(self, chapter_id: int) -> Chapter | None:
        record = self.store.get(CHAPTERS, chapter_id)
        return Chapter.from_record(record) if record else None

    def add_chapter(
        self,
        subject: str = "",
        chapter_no: str = "",
        chapter_name: str = "",
        exam_types: list[str] | None = None,
        notes: str = "",
    ) -> Chapter:
        """Create a chapter with every configured method Not Started.

        lastUpdated starts empty; it is only set by later upgrades.
        """
        chapter = Chapter(
            id=None,
            subject=subject,
            chapter_no=chapter_no,
            chapter_name=chapter_name,
            exam_types=list(exam_types or []),
            learning_status={m: NOT_STARTED for m in self.learning_methods},
            notes=notes,
        )
        return Chapter.from_record(self.store.insert(CHAPTERS, chapter.to_record()))

    def update_chapter(self, chapter_id: int, field_name: str, value: Any) -> bool:
        """Set one chapter field.

        A confidence upgrade also refreshes lastUpdated.

        Returns:
            False if the chapter does not exist
        """
        if field_name not in CHAPTER_FIELDS:
            raise ValueError(f"Not an editable chapter field: {field_name}")

        chapter = self.get_chapter(chapter_id)
        if chapter is None:
            return False

        changes: dict[str, Any] = {field_name: value}
        if field_name == "confidence" and is_confidence_upgrade(chapter.confidence, value):
            changes["last_updated"] = utcnow().isoformat()
        return self.store.update(CHAPTERS, chapter_id, changes)

    def update_learning_status(self, chapter_id: int, method: str, status: str) -> bool:
        """Set the status of one learning method on a chapter.

        An upgrade (ignoring Not Required) also refreshes lastUpdated.
        """
        if status not in STATUS_RANKS:
            raise ValueError(f"Unknown learning status: {status}")
        if method not in self.learning_methods:
            logger.warning("tracker.unknown_learning_method", chapter_id=chapter_id, method=method)
            return False

        chapter = self.get_chapter(chapter_id)
        if chapter is None:
            return False

        old = chapter.learning_status.get(method, NOT_STARTED)
        changes: dict[str, Any] = {
            "learning_status": {**chapter.learning_status, method: status}
        }
        if is_status_upgrade(old, status):
            changes["last_updated"] = utcnow().isoformat()
        return self.store.update(CHAPTERS, chapter_id, changes)

    def delete_chapter(self, chapter_id: int) -> bool:
        return self.store.delete(CHAPTERS, chapter_id)

    def active_subjects(self) -> list[str]:
        """Distinct non-empty chapter subjects, in first-seen order."""
        seen: dict[str, None] = {}
        for chapter in self.list_chapters():
            subject = chapter.subject.strip()
            if subject:
                seen.setdefault(subject, None)
        return list(seen)

    def find_orphaned_chapters(self) -> dict[str, list[Chapter]]:
        """Chapters whose subject is not in the current class defaults.

        Returns:
            Mapping of outdated subject -> chapters, empty when the class has
            no defaults
        """
        class_name = self.get_student_info().class_name
        defaults = self.defaults.get_class_defaults(class_name) if class_name else None
        if defaults is None:
            return {}

        orphaned: dict[str, list[Chapter]] = {}
        for chapter in self.list_chapters():
            if chapter.subject and chapter.subject not in defaults.subjects:
                orphaned.setdefault(chapter.subject, []).append(chapter)
        return orphaned

    def clear_all_data(self) -> BackupSnapshot:
        """Delete every chapter and reset the config lists.

        Returns:
            The "Pre-clear backup" taken before anything is deleted
        """
        snapshot = self.backups.create_backup(PRE_CLEAR_BACKUP)
        self.store.clear(CHAPTERS)
        self.config.update(SUBJECTS, RESET_SUBJECTS)
        self.config.update(LEARNING_METHODS, RESET_LEARNING_METHODS)
        self.config.update(EXAM_TYPES, RESET_EXAM_TYPES)
        logger.info("tracker.data_cleared", backup_id=snapshot.id)
        return snapshot

    # =========================================================================
    # STUDENT INFO
    # =========================================================================

    def get_student_info(self) -> StudentInfo:
        record = self.store.get(STUDENT_INFO, STUDENT_INFO_KEY)
        return StudentInfo.from_record(record) if record else StudentInfo()

    def _save_student_info(self, info: StudentInfo) -> None:
        self.store.put(STUDENT_INFO, info.to_record())

    def update_student_info(self, field_name: str, value: str) -> bool:
        """Set one profile field.

        Changing the class also loads that class's defaults.

        Returns:
            False if the profile is locked and the field is name or class
        """
        if field_name not in STUDENT_FIELDS:
            raise ValueError(f"Not an editable student field: {field_name}")

        if field_name == "class_name":
            return self._set_class(value) is not None

        info = self.get_student_info()
        if info.locked and field_name in LOCKED_FIELDS:
            logger.warning("tracker.student_locked", field=field_name)
            return False

        setattr(info, field_name, value)
        self._save_student_info(info)
        return True

    def change_class(self, class_name: str) -> bool:
        """Change class and seed config lists and chapters from its defaults.

        Returns:
            True if defaults were applied; False if the profile is locked,
            the class is empty, or it has no defaults
        """
        return bool(self._set_class(class_name))

    def _set_class(self, class_name: str) -> bool | None:
        """Store the class; None when rejected, else whether defaults applied."""
        info = self.get_student_info()
        if info.locked:
            logger.warning("tracker.student_locked", field="class_name")
            return None

        info.class_name = class_name
        self._save_student_info(info)
        return self._apply_class_defaults(class_name)

    def lock_student_info(self) -> bool:
        """Lock name and class. One-way.

        Returns:
            False if name or class is empty
        """
        info = self.get_student_info()
        if not info.name.strip() or not info.class_name.strip():
            logger.warning("tracker.lock_rejected", reason="name and class required")
            return False
        if not info.locked:
            info.locked = True
            self._save_student_info(info)
            logger.info("tracker.student_locked_in", name=info.name, class_name=info.class_name)
        return True

    def _apply_class_defaults(self, class_name: str) -> bool:
        if not class_name or not class_name.strip():
            return False

        defaults = self.defaults.get_class_defaults(class_name)
        if defaults is None:
            logger.warning("tracker.class_defaults_missing", class_name=class_name)
            return False

        self.config.update(SUBJECTS, defaults.subjects)
        self.config.update(LEARNING_METHODS, defaults.learning_methods)
        self.config.update(EXAM_TYPES, defaults.exam_types)

        templates = self.defaults.get_default_chapters(class_name)
        chapters = [
            Chapter(
                id=None,
                subject=t.subject,
                chapter_no=t.chapter_no,
                chapter_name=t.chapter_name,
                learning_status={m: NOT_STARTED for m in defaults.learning_methods},
                notes=t.description,
            ).to_record()
            for t in templates
        ]
        if chapters:
            self.store.bulk_add(CHAPTERS, chapters)

        logger.info(
            "tracker.class_defaults_applied",
            class_name=class_name,
            subjects=len(defaults.subjects),
            chapters_added=len(chapters),
        )
        return True

    # =========================================================================
    # DAILY WORK
    # =========================================================================

    def add_daily_task(
        self,
        subject: str,
        task: str,
        chapter_id: int | None = None,
        day: str | None = None,
    ) -> DailyTask:
        new_task = DailyTask(
            id=None,
            date=day or today_str(),
            subject=subject,
            task=task,
            chapter_id=chapter_id,
        )
        return DailyTask.from_record(self.store.insert(DAILY_TASKS, new_task.to_record()))

    def remove_daily_task(self, task_id: int) -> bool:
        return self.store.delete(DAILY_TASKS, task_id)

    def update_daily_task(
        self, task_id: int, status: str, actual_work: str | None = None
    ) -> bool:
        """Record how a task went and refresh that day's history entry.

        Actual work defaults to the planned task text.
        """
        if status not in TASK_STATUSES:
            raise ValueError(f"Unknown task status: {status}")

        record = self.store.get(DAILY_TASKS, task_id)
        if record is None:
            return False

        task = DailyTask.from_record(record)
        self.store.update(
            DAILY_TASKS,
            task_id,
            {"status": status, "actual_work": actual_work or task.task},
        )
        self.save_day_score(task.date)
        return True

    def tasks_for_date(self, day: str) -> list[DailyTask]:
        return [DailyTask.from_record(r) for r in self.store.where(DAILY_TASKS, "date", day)]

    def todays_plan(self) -> list[DailyTask]:
        return self.tasks_for_date(today_str())

    def save_day_score(self, day: str) -> HistoryEntry | None:
        """Recompute and store the completion score for one day.

        done counts 1, partial counts 0.5; the score is a rounded percentage.
        """
        tasks = self.tasks_for_date(day)
        if not tasks:
            return None

        points = sum(1.0 if t.status == "done" else 0.5 if t.status == "partial" else 0.0
                     for t in tasks)
        score = math.floor(points / len(tasks) * 100 + 0.5)
        entry = HistoryEntry(date=day, tasks=[t.to_record() for t in tasks], score=score)
        self.store.put(
            DAILY_HISTORY, {"date": entry.date, "tasks": entry.tasks, "score": entry.score}
        )
        return entry

    def get_history_entry(self, day: str) -> HistoryEntry | None:
        record = self.store.get(DAILY_HISTORY, day)
        return HistoryEntry.from_record(record) if record else None

    def week_history(self, today: date | None = None) -> list[dict[str, Any]]:
        """The last seven days, oldest first, with score None where no entry."""
        today = today or date.today()
        week = []
        for offset in range(6, -1, -1):
            day = today - timedelta(days=offset)
            entry = self.get_history_entry(to_date_str(day))
            week.append(
                {
                    "date": to_date_str(day),
                    "day": WEEKDAY_NAMES[day.weekday()],
                    "score": entry.score if entry else None,
                    "tasks": entry.tasks if entry else [],
                }
            )
        return week

    def weekly_stats(self, today: date | None = None) -> WeeklyStats:
        worked = [d for d in self.week_history(today) if d["score"] is not None]
        if not worked:
            return WeeklyStats(average=0, days_worked=0, subject_frequency={})

        average = math.floor(sum(d["score"] for d in worked) / len(worked) + 0.5)
        frequency = Counter(t.get("subject", "") for d in worked for t in d["tasks"])
        return WeeklyStats(
            average=average, days_worked=len(worked), subject_frequency=dict(frequency)
        )

    # =========================================================================
    # BACKUPS AND EXPORTS
    # =========================================================================

    def create_backup(self, description: str = "Manual backup") -> BackupSnapshot:
        return self.backups.create_backup(description)

    def list_backups(self) -> list[BackupSnapshot]:
        return self.backups.list_backups()

    def restore_from_backup(self, backup_id: int) -> bool:
        return self.backups.restore_from_backup(backup_id)

    def export_full_database(self) -> dict[str, Any]:
        return self.backups.export_full_database()

    def import_full_database(self, document: dict[str, Any] | str | bytes) -> bool:
        return self.backups.import_full_database(document)

    def export_csv(self) -> str:
        return chapters_to_csv(self.list_chapters(), self.learning_methods)

    def export_filename(self, kind: str = "full", day: date | None = None) -> str:
        """Suggested file name for an export.

        Args:
            kind: "full" for the JSON database export, "csv" for chapters
        """
        name = "-".join((self.get_student_info().name or "Student").split())
        stamp = to_date_str(day or date.today())
        if kind == "csv":
            return f"exam-tracker-{name}-{stamp}.csv"
        return f"exam-tracker-FULL-{name}-{stamp}.json"
