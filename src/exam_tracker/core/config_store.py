"""Configuration store: the named ordered lists.

Manages `subjects`, `learningMethods` and `examTypes`. Adding an item is a
soft validation: rejections come back as a falsy `AddResult`, never as an
exception.
"""

from __future__ import annotations

from enum import Enum

import structlog

from exam_tracker.db.record_store import CONFIG, RecordStore

logger = structlog.get_logger(__name__)

SUBJECTS = "subjects"
LEARNING_METHODS = "learningMethods"
EXAM_TYPES = "examTypes"

DEFAULT_LISTS: dict[str, list[str]] = {
    SUBJECTS: ["Maths", "Science", "English", "Social Studies"],
    LEARNING_METHODS: ["School", "Tuition", "Online App", "Self Study"],
    EXAM_TYPES: ["Half Yearly", "Annual", "Unit Test 1", "Unit Test 2", "Weekly Test"],
}


class AddResult(Enum):
    """Outcome of adding an item to a configuration list."""

    ADDED = "added"
    ALREADY_EXISTS = "already_exists"
    INVALID = "invalid"

    def __bool__(self) -> bool:
        return self is AddResult.ADDED


class ConfigStore:
    """Read and replace configuration lists."""

    def __init__(self, store: RecordStore):
        self.store = store

    def get(self, key: str) -> list[str]:
        """Get a list, or its built-in default if it was never stored."""
        record = self.store.get(CONFIG, key)
        if record is None:
            return list(DEFAULT_LISTS.get(key, []))
        return list(record["items"])

    def update(self, key: str, values: list[str]) -> None:
        """Replace the whole list."""
        self.store.put(CONFIG, {"key": key, "items": list(values)})
        logger.debug("config.updated", key=key, count=len(values))

    def add_item(self, key: str, value: str) -> AddResult:
        """Append a trimmed value if it is non-empty and not present yet.

        The duplicate check is case-sensitive.
        """
        trimmed = (value or "").strip()
        if not trimmed:
            logger.warning("config.item_rejected", key=key, reason="empty")
            return AddResult.INVALID

        values = self.get(key)
        if trimmed in values:
            logger.warning("config.item_rejected", key=key, value=trimmed, reason="duplicate")
            return AddResult.ALREADY_EXISTS

        values.append(trimmed)
        self.update(key, values)
        return AddResult.ADDED

    def remove_item(self, key: str, value: str) -> bool:
        """Remove a value. Returns False if it was not in the list."""
        values = self.get(key)
        if value not in values:
            return False
        values.remove(value)
        self.update(key, values)
        return True
