"""Class-defaults loader.

Seeds the class_defaults and default_chapters collections from the
class-defaults document:

    {
        "classes": {
            "7": {"subjects": [...], "learningMethods": [...], "examTypes": [...]}
        },
        "defaultChapters": [
            {"className": "7", "subject": "...", "chapterNo": "1",
             "chapterName": "...", "description": "..."}
        ]
    }

On first run a missing or broken document falls back to the built-in table
below. The built-in table has no default chapters.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Any

import structlog

from exam_tracker.core.errors import ClassDefaultsError
from exam_tracker.core.models import ClassDefaults, DefaultChapter
from exam_tracker.db.record_store import CLASS_DEFAULTS, DEFAULT_CHAPTERS, RecordStore

logger = structlog.get_logger(__name__)

DEFAULT_DOCUMENT_PATH = Path("data/class-defaults.json")

_STANDARD_SUBJECTS = ["Mathematics", "Science", "English", "Social Studies", "Hindi", "Sanskrit"]
_STANDARD_METHODS = ["School", "Tuition", "Online App", "Self Study"]

BUILTIN_CLASS_DEFAULTS: tuple[ClassDefaults, ...] = (
    ClassDefaults(
        class_name="6",
        subjects=_STANDARD_SUBJECTS,
        learning_methods=_STANDARD_METHODS,
        exam_types=["Half Yearly", "Annual", "Unit Test 1", "Unit Test 2", "Weekly Test"],
    ),
    ClassDefaults(
        class_name="7",
        subjects=_STANDARD_SUBJECTS,
        learning_methods=_STANDARD_METHODS,
        exam_types=["Half Yearly", "Annual", "Unit Test 1", "Unit Test 2", "Weekly Test"],
    ),
    ClassDefaults(
        class_name="8",
        subjects=_STANDARD_SUBJECTS,
        learning_methods=_STANDARD_METHODS,
        exam_types=["Half Yearly", "Annual", "Unit Test 1", "Unit Test 2", "Weekly Test"],
    ),
    ClassDefaults(
        class_name="9",
        subjects=_STANDARD_SUBJECTS,
        learning_methods=_STANDARD_METHODS,
        exam_types=["Half Yearly", "Annual", "Unit Test 1", "Unit Test 2", "Board Exam"],
    ),
)


class DefaultsSource(Enum):
    """Where the class defaults came from on initialization."""

    EXISTING = "existing"
    DOCUMENT = "document"
    BUILTIN = "builtin"


def read_defaults_document(
    path: Path,
) -> tuple[list[ClassDefaults], list[DefaultChapter]]:
    """Read and validate a class-defaults document.

    Args:
        path: Path to the JSON document. Always re-read from disk.

    Returns:
        (class defaults, default chapters)

    Raises:
        ClassDefaultsError: If the file is missing, not JSON, or malformed
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ClassDefaultsError(path, f"cannot read file ({e})") from e
    except json.JSONDecodeError as e:
        raise ClassDefaultsError(path, f"invalid JSON ({e})") from e

    if not isinstance(data, dict) or not isinstance(data.get("classes"), dict):
        raise ClassDefaultsError(path, "missing 'classes' object")

    classes: list[ClassDefaults] = []
    for class_name, entry in data["classes"].items():
        if not isinstance(entry, dict):
            raise ClassDefaultsError(path, f"class '{class_name}' must be an object")
        classes.append(
            ClassDefaults(
                class_name=str(class_name),
                subjects=list(entry.get("subjects") or []),
                learning_methods=list(entry.get("learningMethods") or []),
                exam_types=list(entry.get("examTypes") or []),
            )
        )

    chapters: list[DefaultChapter] = []
    for item in data.get("defaultChapters") or []:
        chapters.append(_parse_default_chapter(path, item))

    return classes, chapters


def _parse_default_chapter(path: Path, item: Any) -> DefaultChapter:
    if not isinstance(item, dict) or not item.get("className"):
        raise ClassDefaultsError(path, "default chapter without 'className'")
    return DefaultChapter(
        id=item.get("id"),
        class_name=str(item["className"]),
        subject=item.get("subject") or "",
        chapter_no=str(item.get("chapterNo") or ""),
        chapter_name=item.get("chapterName") or "",
        description=item.get("description") or "",
    )


class ClassDefaultsLoader:
    """Populates and serves class defaults and default chapters."""

    def __init__(self, store: RecordStore, document_path: Path = DEFAULT_DOCUMENT_PATH):
        self.store = store
        self.document_path = Path(document_path)

    def initialize(self) -> DefaultsSource:
        """Load class defaults once.

        Does nothing if defaults are already stored. Otherwise loads the
        document, falling back silently to the built-in table.
        """
        if self.store.count(CLASS_DEFAULTS) > 0:
            logger.debug("class_defaults.already_loaded")
            return DefaultsSource.EXISTING

        try:
            classes, chapters = read_defaults_document(self.document_path)
        except ClassDefaultsError as e:
            logger.warning("class_defaults.document_unavailable", error=str(e))
            self.store.bulk_put(CLASS_DEFAULTS, [d.to_record() for d in BUILTIN_CLASS_DEFAULTS])
            logger.info("class_defaults.loaded", source="builtin", classes=len(BUILTIN_CLASS_DEFAULTS))
            return DefaultsSource.BUILTIN

        self._store_document(classes, chapters)
        return DefaultsSource.DOCUMENT

    def reload(self) -> bool:
        """Clear both collections and reload from the document.

        No fallback: on failure the collections stay empty.

        Returns:
            True if the document was loaded, False otherwise
        """
        self.store.clear(CLASS_DEFAULTS)
        self.store.clear(DEFAULT_CHAPTERS)

        try:
            classes, chapters = read_defaults_document(self.document_path)
        except ClassDefaultsError as e:
            logger.error("class_defaults.reload_failed", error=str(e))
            return False

        self._store_document(classes, chapters)
        return True

    def get_class_defaults(self, class_name: str) -> ClassDefaults | None:
        record = self.store.get(CLASS_DEFAULTS, class_name)
        return ClassDefaults.from_record(record) if record else None

    def list_classes(self) -> list[str]:
        return [r["class_name"] for r in self.store.all(CLASS_DEFAULTS)]

    def get_default_chapters(self, class_name: str) -> list[DefaultChapter]:
        return [
            DefaultChapter.from_record(r)
            for r in self.store.where(DEFAULT_CHAPTERS, "class_name", class_name)
        ]

    def add_default_chapter(
        self,
        class_name: str,
        subject: str,
        chapter_no: str,
        chapter_name: str,
        description: str = "",
    ) -> DefaultChapter:
        record = self.store.insert(
            DEFAULT_CHAPTERS,
            DefaultChapter(
                id=None,
                class_name=class_name,
                subject=subject,
                chapter_no=chapter_no,
                chapter_name=chapter_name,
                description=description,
            ).to_record(),
        )
        return DefaultChapter.from_record(record)

    def delete_default_chapter(self, chapter_id: int) -> bool:
        return self.store.delete(DEFAULT_CHAPTERS, chapter_id)

    def _store_document(
        self, classes: list[ClassDefaults], chapters: list[DefaultChapter]
    ) -> None:
        self.store.bulk_put(CLASS_DEFAULTS, [c.to_record() for c in classes])
        if chapters:
            self.store.bulk_put(DEFAULT_CHAPTERS, [c.to_record() for c in chapters])
        logger.info(
            "class_defaults.loaded",
            source=str(self.document_path),
            classes=len(classes),
            chapters=len(chapters),
        )
