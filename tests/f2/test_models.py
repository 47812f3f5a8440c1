"""Tests for progress ranking rules and models (F2)."""

import pytest

from exam_tracker.core.models import (
    BackupSnapshot,
    Chapter,
    StudentInfo,
    confidence_rank,
    is_confidence_upgrade,
    is_status_upgrade,
    status_rank,
)


class TestConfidenceRanks:
    """Tests for the confidence ordering."""

    @pytest.mark.parametrize(
        "old,new,expected",
        [
            ("None", "Low", True),
            ("Low", "Excellent", True),
            ("Good", "Medium", False),
            ("Good", "Good", False),
            ("Excellent", "None", False),
        ],
    )
    def test_upgrade(self, old, new, expected):
        assert is_confidence_upgrade(old, new) is expected

    def test_unknown_ranks_as_none(self):
        assert confidence_rank("Amazing") == 0
        assert confidence_rank(None) == 0
        assert is_confidence_upgrade("Amazing", "Low") is True


class TestStatusRanks:
    """Tests for the learning-status ordering."""

    @pytest.mark.parametrize(
        "old,new,expected",
        [
            ("Not Started", "In Progress", True),
            ("In Progress", "Completed", True),
            ("Completed", "In Progress", False),
            ("Not Started", "Not Required", False),
            ("Not Required", "Completed", False),
        ],
    )
    def test_upgrade(self, old, new, expected):
        assert is_status_upgrade(old, new) is expected

    def test_not_required_is_sentinel(self):
        assert status_rank("Not Required") == -1

    def test_unknown_ranks_as_not_started(self):
        assert status_rank("Whatever") == 0


class TestModels:
    """Tests for record conversion."""

    def test_chapter_defaults(self):
        chapter = Chapter.from_record({"id": 1, "subject": "Maths"})

        assert chapter.writing_done == "No"
        assert chapter.confidence == "None"
        assert chapter.last_updated is None
        assert chapter.exam_types == []

    def test_chapter_number_is_text(self):
        assert Chapter.from_record({"id": 1, "chapter_no": 3}).chapter_no == "3"

    def test_student_record_has_singleton_key(self):
        record = StudentInfo(name="Asha", class_name="7").to_record()
        assert record["key"] == "info"
        assert record["locked"] is False

    def test_student_class_is_text(self):
        info = StudentInfo.from_record({"key": "info", "class_name": 7})
        assert info.class_name == "7"

    def test_backup_chapter_count(self):
        snapshot = BackupSnapshot.from_record(
            {"id": 1, "timestamp": "t", "data": {"chapters": [{}, {}]}}
        )
        assert snapshot.chapter_count == 2
        assert snapshot.description == ""
