"""Portable document codec.

Converts between store records (snake_case columns) and the portable JSON
shape used by full exports, imports and the legacy document (camelCase
keys, collection names such as `trackingData`). Also renders the chapter
CSV export.

Export document (version 1):
    {
        "exportDate": "...",
        "version": 1,
        "data": {
            "trackingData": [...], "studentInfo": [...], "config": [...],
            "dailyPlans": [...], "dailyHistory": [...], "backups": [...]
        }
    }
"""

from __future__ import annotations

import csv
import io
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from exam_tracker.core.errors import ImportFormatError
from exam_tracker.core.models import NOT_STARTED, STUDENT_INFO_KEY, Chapter
from exam_tracker.db.record_store import (
    BACKUPS,
    CHAPTERS,
    CONFIG,
    DAILY_HISTORY,
    DAILY_TASKS,
    SNAPSHOT_COLLECTIONS,
    STUDENT_INFO,
)
from exam_tracker.utils.time_utils import parse_timestamp

EXPORT_VERSION = 1

CONFIG_KEYS = ("subjects", "learningMethods", "examTypes")

PORTABLE_NAMES: dict[str, str] = {
    CHAPTERS: "trackingData",
    STUDENT_INFO: "studentInfo",
    CONFIG: "config",
    DAILY_TASKS: "dailyPlans",
    DAILY_HISTORY: "dailyHistory",
    BACKUPS: "backups",
}

# (store column, portable key)
FIELD_MAPS: dict[str, tuple[tuple[str, str], ...]] = {
    CHAPTERS: (
        ("id", "id"),
        ("subject", "subject"),
        ("chapter_no", "chapterNo"),
        ("chapter_name", "chapterName"),
        ("exam_types", "examTypes"),
        ("learning_status", "learningStatus"),
        ("writing_done", "writingDone"),
        ("confidence", "confidence"),
        ("last_updated", "lastUpdated"),
        ("notes", "notes"),
    ),
    STUDENT_INFO: (
        ("key", "key"),
        ("name", "name"),
        ("class_name", "class"),
        ("review_date", "reviewDate"),
        ("locked", "locked"),
    ),
    CONFIG: (("key", "key"), ("items", "values")),
    DAILY_TASKS: (
        ("id", "id"),
        ("date", "date"),
        ("subject", "subject"),
        ("task", "task"),
        ("chapter_id", "chapterId"),
        ("status", "status"),
        ("actual_work", "actualWork"),
    ),
    DAILY_HISTORY: (("date", "date"), ("tasks", "tasks"), ("score", "score")),
    BACKUPS: (
        ("id", "id"),
        ("timestamp", "timestamp"),
        ("description", "description"),
        ("data", "data"),
    ),
}

REQUIRED_FIELDS: dict[str, tuple[str, ...]] = {
    CONFIG: ("key",),
    DAILY_TASKS: ("date",),
    DAILY_HISTORY: ("date",),
    BACKUPS: ("timestamp",),
}


@dataclass
class ImportPayload:
    """A parsed import document, in store form."""

    collections: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    backups: list[dict[str, Any]] = field(default_factory=list)


# =============================================================================
# RECORD CONVERSION
# =============================================================================


def to_portable(collection: str, record: dict[str, Any]) -> dict[str, Any]:
    """Convert a store record into its portable form."""
    result = {
        portable: record[column]
        for column, portable in FIELD_MAPS[collection]
        if column in record
    }
    if collection == DAILY_HISTORY:
        result["tasks"] = [to_portable(DAILY_TASKS, t) for t in record.get("tasks", [])]
    elif collection == BACKUPS:
        result["data"] = snapshot_to_portable(record.get("data") or {})
    return result


def from_portable(collection: str, item: Any) -> dict[str, Any]:
    """Convert a portable record into store form.

    Raises:
        ImportFormatError: If the item is not an object or lacks a required field
    """
    if not isinstance(item, dict):
        raise ImportFormatError(
            f"{PORTABLE_NAMES[collection]} entries must be objects, got {type(item).__name__}"
        )
    for required in REQUIRED_FIELDS.get(collection, ()):
        portable = dict(FIELD_MAPS[collection])[required]
        if item.get(portable) in (None, ""):
            raise ImportFormatError(
                f"{PORTABLE_NAMES[collection]} entry missing '{portable}'"
            )

    record = _rename(collection, item)
    if collection == CHAPTERS:
        # Early documents carried a single examType string
        if "exam_types" not in record and item.get("examType"):
            record["exam_types"] = [item["examType"]]
    elif collection == STUDENT_INFO:
        record.setdefault("key", STUDENT_INFO_KEY)
    elif collection == CONFIG:
        items = item.get("values", [])
        if not isinstance(items, list):
            raise ImportFormatError(f"config '{item['key']}' values must be a list")
        record["items"] = items
    elif collection == DAILY_HISTORY:
        record["tasks"] = [
            _rename(DAILY_TASKS, t)
            for t in item.get("tasks") or []
            if isinstance(t, dict)
        ]
    elif collection == BACKUPS:
        _check_timestamp(item["timestamp"])
        record["data"] = snapshot_from_portable(item.get("data") or {})
    return record


def _check_timestamp(value: Any) -> None:
    try:
        parse_timestamp(value)
    except (AttributeError, TypeError, ValueError) as exc:
        raise ImportFormatError(
            f"backups entry has invalid 'timestamp': {value!r}"
        ) from exc


def _rename(collection: str, item: dict[str, Any]) -> dict[str, Any]:
    return {
        column: item[portable]
        for column, portable in FIELD_MAPS[collection]
        if portable in item
    }


def snapshot_to_portable(data: dict[str, list[dict[str, Any]]]) -> dict[str, Any]:
    """Convert a snapshot payload (collection -> records) to portable form."""
    return {
        PORTABLE_NAMES[name]: [to_portable(name, r) for r in data.get(name, [])]
        for name in SNAPSHOT_COLLECTIONS
    }


def snapshot_from_portable(data: dict[str, Any]) -> dict[str, list[dict[str, Any]]]:
    """Convert a portable snapshot payload to store form.

    Missing collections come back empty. Config rows other than the three
    named lists (old store markers) are dropped.
    """
    if not isinstance(data, dict):
        raise ImportFormatError("'data' must be an object")

    result: dict[str, list[dict[str, Any]]] = {}
    for name in SNAPSHOT_COLLECTIONS:
        items = data.get(PORTABLE_NAMES[name]) or []
        if not isinstance(items, list):
            raise ImportFormatError(f"'{PORTABLE_NAMES[name]}' must be a list")
        if name == CONFIG:
            items = [
                i for i in items
                if isinstance(i, dict) and i.get("key") in CONFIG_KEYS
            ]
        result[name] = [from_portable(name, i) for i in items]
    return result


# =============================================================================
# FULL EXPORT / IMPORT
# =============================================================================


def build_export_document(
    snapshot: dict[str, list[dict[str, Any]]],
    backups: list[dict[str, Any]],
    exported_at: datetime,
) -> dict[str, Any]:
    """Build the full export document from live data and backup history."""
    data = snapshot_to_portable(snapshot)
    data["backups"] = [to_portable(BACKUPS, b) for b in backups]
    return {
        "exportDate": exported_at.isoformat(),
        "version": EXPORT_VERSION,
        "data": data,
    }


def parse_import_document(document: dict[str, Any] | str | bytes) -> ImportPayload:
    """Parse a full export document.

    Args:
        document: Parsed dict or raw JSON text

    Returns:
        ImportPayload with every live collection (empty when missing) and
        the backup history carried by the document

    Raises:
        ImportFormatError: If the document is not valid JSON or has the wrong shape
    """
    if isinstance(document, (str, bytes)):
        try:
            document = json.loads(document)
        except json.JSONDecodeError as e:
            raise ImportFormatError(f"Invalid JSON: {e}") from e

    if not isinstance(document, dict):
        raise ImportFormatError("Import document must be a JSON object")
    if "data" not in document:
        raise ImportFormatError("Import document has no 'data' section")

    data = document["data"]
    collections = snapshot_from_portable(data)

    backups = data.get("backups") or []
    if not isinstance(backups, list):
        raise ImportFormatError("'backups' must be a list")

    return ImportPayload(
        collections=collections,
        backups=[from_portable(BACKUPS, b) for b in backups],
    )


# =============================================================================
# CSV EXPORT
# =============================================================================


def format_last_updated(value: str | None) -> str:
    """Human-readable local time for a stored timestamp, or 'Never'."""
    if not value:
        return "Never"
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return value
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone()
    return parsed.strftime("%Y-%m-%d %H:%M")


def chapters_to_csv(chapters: list[Chapter], learning_methods: list[str]) -> str:
    """Render chapters as CSV, one column per configured learning method.

    Every field is quoted and embedded quotes are doubled.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(
        ["Subject", "Chapter No", "Chapter Name", "Exam Types"]
        + list(learning_methods)
        + ["Writing Done", "Confidence", "Last Updated", "Notes"]
    )
    for chapter in chapters:
        writer.writerow(
            [chapter.subject, chapter.chapter_no, chapter.chapter_name,
             "; ".join(chapter.exam_types)]
            + [chapter.learning_status.get(m, NOT_STARTED) for m in learning_methods]
            + [chapter.writing_done, chapter.confidence,
               format_last_updated(chapter.last_updated), chapter.notes]
        )
    return buffer.getvalue()
