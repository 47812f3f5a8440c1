"""Tests for the generic record store (F1)."""

import sqlite3

import pytest

from exam_tracker.db.record_store import (
    BACKUPS,
    CHAPTERS,
    CONFIG,
    DAILY_TASKS,
    META,
    STUDENT_INFO,
)


def _chapter(subject="Maths", **overrides):
    record = {
        "subject": subject,
        "chapter_no": "1",
        "chapter_name": "Numbers",
        "exam_types": ["Annual"],
        "learning_status": {"School": "Not Started"},
    }
    record.update(overrides)
    return record


class TestSingleRecords:
    """Tests for insert/get/update/delete."""

    def test_insert_assigns_key(self, store):
        """Insert without id gets a store-assigned key."""
        first = store.insert(CHAPTERS, _chapter())
        second = store.insert(CHAPTERS, _chapter("Science"))

        assert first["id"] is not None
        assert second["id"] > first["id"]

    def test_insert_keeps_explicit_key(self, store):
        stored = store.insert(CHAPTERS, _chapter(id=42))
        assert stored["id"] == 42

    def test_json_fields_round_trip(self, store):
        """Lists and mappings come back decoded."""
        stored = store.insert(CHAPTERS, _chapter())
        fetched = store.get(CHAPTERS, stored["id"])

        assert fetched["exam_types"] == ["Annual"]
        assert fetched["learning_status"] == {"School": "Not Started"}
        assert fetched["writing_done"] == "No"
        assert fetched["last_updated"] is None

    def test_bool_fields_decoded(self, store):
        store.put(STUDENT_INFO, {"key": "info", "name": "Asha", "locked": True})
        assert store.get(STUDENT_INFO, "info")["locked"] is True

    def test_explicit_key_collection_requires_key(self, store):
        with pytest.raises(ValueError):
            store.insert(CONFIG, {"items": []})

    def test_get_unknown_returns_none(self, store):
        assert store.get(CHAPTERS, 999) is None

    def test_update_merges_fields(self, store):
        stored = store.insert(CHAPTERS, _chapter())

        assert store.update(CHAPTERS, stored["id"], {"confidence": "Good"}) is True
        fetched = store.get(CHAPTERS, stored["id"])
        assert fetched["confidence"] == "Good"
        assert fetched["subject"] == "Maths"

    def test_update_unknown_key_is_noop(self, store):
        """Updating a missing record returns False and writes nothing."""
        store.insert(CHAPTERS, _chapter())

        assert store.update(CHAPTERS, 999, {"confidence": "Good"}) is False
        assert store.count(CHAPTERS) == 1

    def test_delete(self, store):
        stored = store.insert(CHAPTERS, _chapter())

        assert store.delete(CHAPTERS, stored["id"]) is True
        assert store.delete(CHAPTERS, stored["id"]) is False
        assert store.count(CHAPTERS) == 0

    def test_all_in_key_order(self, store):
        store.insert(CHAPTERS, _chapter(id=5, subject="B"))
        store.insert(CHAPTERS, _chapter(id=2, subject="A"))

        assert [r["id"] for r in store.all(CHAPTERS)] == [2, 5]

    def test_where_filters_by_column(self, store):
        store.insert(DAILY_TASKS, {"date": "2026-01-01", "task": "a"})
        store.insert(DAILY_TASKS, {"date": "2026-01-02", "task": "b"})
        store.insert(DAILY_TASKS, {"date": "2026-01-01", "task": "c"})

        tasks = store.where(DAILY_TASKS, "date", "2026-01-01")
        assert [t["task"] for t in tasks] == ["a", "c"]

    def test_where_rejects_unknown_column(self, store):
        with pytest.raises(ValueError):
            store.where(DAILY_TASKS, "nope", 1)

    def test_unknown_collection(self, store):
        with pytest.raises(ValueError):
            store.all("nope")

    def test_meta_markers(self, store):
        assert store.get_meta("lastAutoBackup") is None
        assert store.get_meta("missing", default="x") == "x"

        store.set_meta("migrated", {"value": True, "date": "2026-01-01"})
        assert store.get_meta("migrated") == {"value": True, "date": "2026-01-01"}
        assert store.count(META) == 1


class TestBulkOperations:
    """Tests for bulk writes and snapshots."""

    def test_bulk_add_and_delete(self, store):
        count = store.bulk_add(CHAPTERS, [_chapter(), _chapter("Science")])
        assert count == 2

        ids = [r["id"] for r in store.all(CHAPTERS)]
        store.bulk_delete(CHAPTERS, ids)
        assert store.count(CHAPTERS) == 0

    def test_bulk_delete_counts_only_existing(self, store):
        record = store.insert(CHAPTERS, _chapter())

        assert store.bulk_delete(CHAPTERS, [record["id"], 999]) == 1
        assert store.bulk_delete(CHAPTERS, [record["id"]]) == 0

    def test_bulk_put_replaces(self, store):
        store.bulk_put(CONFIG, [{"key": "subjects", "items": ["A"]}])
        store.bulk_put(CONFIG, [{"key": "subjects", "items": ["B"]}])

        assert store.get(CONFIG, "subjects")["items"] == ["B"]

    def test_bulk_update_reports_counts(self, store):
        """Updated and missing keys are reported separately."""
        first = store.insert(CHAPTERS, _chapter())
        second = store.insert(CHAPTERS, _chapter("Science"))

        result = store.bulk_update(
            CHAPTERS,
            [
                (first["id"], {"subject": "Maths II"}),
                (second["id"], {"subject": "Science II"}),
                (999, {"subject": "ghost"}),
            ],
        )

        assert result.updated == 2
        assert result.missing == [999]
        assert result.ok
        assert store.get(CHAPTERS, first["id"])["subject"] == "Maths II"

    def test_bulk_update_isolates_failures(self, store):
        """A record whose changes cannot be encoded fails alone."""
        first = store.insert(CHAPTERS, _chapter())
        second = store.insert(CHAPTERS, _chapter("Science"))

        result = store.bulk_update(
            CHAPTERS,
            [
                (first["id"], {"learning_status": {"School": object()}}),
                (second["id"], {"confidence": "Low"}),
            ],
        )

        assert result.failed == [first["id"]]
        assert result.updated == 1
        assert not result.ok
        assert store.get(CHAPTERS, second["id"])["confidence"] == "Low"

    def test_snapshot_reads_collections(self, store):
        store.insert(CHAPTERS, _chapter())
        store.put(CONFIG, {"key": "subjects", "items": ["Maths"]})

        snapshot = store.snapshot([CHAPTERS, CONFIG, STUDENT_INFO])

        assert len(snapshot[CHAPTERS]) == 1
        assert snapshot[CONFIG] == [{"key": "subjects", "items": ["Maths"]}]
        assert snapshot[STUDENT_INFO] == []


class TestReplaceAll:
    """Tests for atomic replace_all."""

    def test_replaces_collections(self, store):
        store.insert(CHAPTERS, _chapter())
        store.put(CONFIG, {"key": "subjects", "items": ["Old"]})

        store.replace_all(
            {
                CHAPTERS: [_chapter("New", id=7)],
                CONFIG: [{"key": "subjects", "items": ["New"]}],
            }
        )

        chapters = store.all(CHAPTERS)
        assert [(c["id"], c["subject"]) for c in chapters] == [(7, "New")]
        assert store.get(CONFIG, "subjects")["items"] == ["New"]

    def test_failure_leaves_live_data(self, store):
        """A failing insert rolls back the deletes too."""
        store.insert(CHAPTERS, _chapter())

        with pytest.raises(sqlite3.IntegrityError):
            store.replace_all({CHAPTERS: [_chapter(id=1), _chapter(id=1)]})

        chapters = store.all(CHAPTERS)
        assert len(chapters) == 1
        assert chapters[0]["subject"] == "Maths"

    def test_append_gets_fresh_keys(self, store):
        existing = store.insert(
            BACKUPS, {"timestamp": "2026-01-01T00:00:00+00:00", "data": {}}
        )

        store.replace_all(
            {CHAPTERS: []},
            append={
                BACKUPS: [
                    {"id": existing["id"], "timestamp": "2025-12-01T00:00:00+00:00",
                     "description": "imported", "data": {}}
                ]
            },
        )

        assert store.count(BACKUPS) == 2
