"""Entity models and progress ranking rules.

Models convert to and from the record dicts used by the record store
(`to_record` / `from_record`). Portable (camelCase) document keys are
handled in `exam_tracker.core.documents`.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

# =============================================================================
# PROGRESS LEVELS
# =============================================================================

NOT_STARTED = "Not Started"
IN_PROGRESS = "In Progress"
COMPLETED = "Completed"
NOT_REQUIRED = "Not Required"

# Not Required is a sentinel: never an upgrade source or target
STATUS_RANKS: dict[str, int] = {
    NOT_STARTED: 0,
    IN_PROGRESS: 1,
    COMPLETED: 2,
    NOT_REQUIRED: -1,
}

CONFIDENCE_LEVELS: tuple[str, ...] = ("None", "Low", "Medium", "Good", "Excellent")
WRITING_LEVELS: tuple[str, ...] = ("No", "Partial", "Yes")

TASK_STATUSES: tuple[str, ...] = ("pending", "done", "partial", "notDone")

STUDENT_INFO_KEY = "info"
DEFAULT_REVIEW_DATE = "2026-01-14"


def confidence_rank(value: str | None) -> int:
    """Rank of a confidence level; unknown values rank as None (0)."""
    try:
        return CONFIDENCE_LEVELS.index(value)
    except ValueError:
        return 0


def status_rank(value: str | None) -> int:
    """Rank of a learning status; unknown values rank as Not Started (0)."""
    return STATUS_RANKS.get(value, 0)


def is_confidence_upgrade(old: str | None, new: str | None) -> bool:
    return confidence_rank(new) > confidence_rank(old)


def is_status_upgrade(old: str | None, new: str | None) -> bool:
    """True when a learning status strictly improves.

    Transitions from or to Not Required never count.
    """
    old_rank = status_rank(old)
    new_rank = status_rank(new)
    if old_rank == -1 or new_rank == -1:
        return False
    return new_rank > old_rank


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class Chapter:
    """A trackable unit of study content."""

    id: int | None
    subject: str = ""
    chapter_no: str = ""
    chapter_name: str = ""
    exam_types: list[str] = field(default_factory=list)
    learning_status: dict[str, str] = field(default_factory=dict)
    writing_done: str = "No"
    confidence: str = "None"
    last_updated: str | None = None
    notes: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Chapter":
        return cls(
            id=record.get("id"),
            subject=record.get("subject") or "",
            chapter_no=str(record.get("chapter_no") or ""),
            chapter_name=record.get("chapter_name") or "",
            exam_types=list(record.get("exam_types") or []),
            learning_status=dict(record.get("learning_status") or {}),
            writing_done=record.get("writing_done") or "No",
            confidence=record.get("confidence") or "None",
            last_updated=record.get("last_updated"),
            notes=record.get("notes") or "",
        )

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class StudentInfo:
    """The student profile (singleton)."""

    name: str = ""
    class_name: str = ""
    review_date: str = DEFAULT_REVIEW_DATE
    locked: bool = False  # Once True, name and class are fixed

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "StudentInfo":
        return cls(
            name=record.get("name") or "",
            class_name=str(record.get("class_name") or ""),
            review_date=record.get("review_date") or DEFAULT_REVIEW_DATE,
            locked=bool(record.get("locked", False)),
        )

    def to_record(self) -> dict[str, Any]:
        return {"key": STUDENT_INFO_KEY, **asdict(self)}


@dataclass
class DailyTask:
    """A planned piece of work for one day."""

    id: int | None
    date: str
    subject: str = ""
    task: str = ""
    chapter_id: int | None = None
    status: str = "pending"
    actual_work: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "DailyTask":
        return cls(
            id=record.get("id"),
            date=record["date"],
            subject=record.get("subject") or "",
            task=record.get("task") or "",
            chapter_id=record.get("chapter_id"),
            status=record.get("status") or "pending",
            actual_work=record.get("actual_work") or "",
        )

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class HistoryEntry:
    """Daily completion summary; one per date."""

    date: str
    tasks: list[dict[str, Any]] = field(default_factory=list)
    score: float | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "HistoryEntry":
        return cls(
            date=record["date"],
            tasks=list(record.get("tasks") or []),
            score=record.get("score"),
        )


@dataclass
class BackupSnapshot:
    """A full point-in-time copy of the live collections."""

    id: int
    timestamp: str
    description: str
    data: dict[str, list[dict[str, Any]]] = field(default_factory=dict)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "BackupSnapshot":
        return cls(
            id=record["id"],
            timestamp=record["timestamp"],
            description=record.get("description") or "",
            data=record.get("data") or {},
        )

    @property
    def chapter_count(self) -> int:
        return len(self.data.get("chapters", []))


@dataclass
class ClassDefaults:
    """Template lists for one school class."""

    class_name: str
    subjects: list[str] = field(default_factory=list)
    learning_methods: list[str] = field(default_factory=list)
    exam_types: list[str] = field(default_factory=list)

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "ClassDefaults":
        return cls(
            class_name=record["class_name"],
            subjects=list(record.get("subjects") or []),
            learning_methods=list(record.get("learning_methods") or []),
            exam_types=list(record.get("exam_types") or []),
        )

    def to_record(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DefaultChapter:
    """Class-scoped template chapter."""

    id: int | None
    class_name: str
    subject: str = ""
    chapter_no: str = ""
    chapter_name: str = ""
    description: str = ""

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "DefaultChapter":
        return cls(
            id=record.get("id"),
            class_name=str(record["class_name"]),
            subject=record.get("subject") or "",
            chapter_no=str(record.get("chapter_no") or ""),
            chapter_name=record.get("chapter_name") or "",
            description=record.get("description") or "",
        )

    def to_record(self) -> dict[str, Any]:
        return asdict(self)
